"""Reputation ledger: a monotonic counter on User."""
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models.user import User

RETURN_REWARD = 5


async def increment_reputation(db: AsyncSession, user_id: uuid.UUID, points: int = 1) -> int:
    """Add ``points`` to the user's reputation and return the new score.

    Runs inside the caller's transaction; nothing is committed here.
    """
    if points < 1:
        raise ValueError("Reputation can only be incremented by a positive amount")

    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(reputation_score=User.reputation_score + points)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount == 0:
        raise NotFoundError("User not found")

    # reload so any instance already in the session sees the new score
    refreshed = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    return refreshed.scalar_one().reputation_score
