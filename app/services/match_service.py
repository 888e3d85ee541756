"""Match lifecycle: approve, reject and claim, plus the match query surface.

Only the found item's owner decides a match; the lost item's owner (or a
claimer) can read it and submit verification answers. Every mutation locks
the match row, applies the change and any item cascade, and commits once.
"""
from datetime import datetime, timezone
import logging
import uuid

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
)
from app.models.enums import OPEN_MATCH_STATUSES, FoundItemStatus, LostItemStatus, MatchStatus
from app.models.lost_found import FoundItem, LostItem, Match
from app.models.user import User
from app.services import item_service
from app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

MANUAL_CLAIM_SCORE = 1.0


def _normalize_answer(value) -> str:
    return " ".join(str(value or "").lower().split())


def verification_ratio(lost_item: LostItem | None, answers: dict | None) -> float | None:
    """Share of the lost item's verification questions answered correctly.

    ``answers`` maps the question index (as a string) to the submitted text.
    Returns None when there is nothing to verify against.
    """
    if lost_item is None or not lost_item.verification_questions:
        return None
    answers = answers or {}
    questions = lost_item.verification_questions
    correct = sum(
        1
        for index, question in enumerate(questions)
        if _normalize_answer(answers.get(str(index))) == _normalize_answer(question.get("answer"))
    )
    return correct / len(questions)


class MatchService:
    @staticmethod
    async def _get_match(db: AsyncSession, match_id: uuid.UUID, *, for_update: bool = False) -> Match:
        stmt = (
            select(Match)
            .where(Match.id == match_id)
            .execution_options(populate_existing=True)
            .options(selectinload(Match.lost_item), selectinload(Match.found_item))
        )
        if for_update:
            stmt = stmt.with_for_update()
        match = (await db.execute(stmt)).scalar_one_or_none()
        if match is None:
            raise NotFoundError("Match not found")
        return match

    @staticmethod
    def _can_view(match: Match, user: User) -> bool:
        if match.found_item.user_id == user.id:
            return True
        if match.lost_item is not None and match.lost_item.user_id == user.id:
            return True
        return match.claimer_id == user.id

    @staticmethod
    def _ensure_finder(match: Match, actor: User, verb: str) -> None:
        if match.found_item.user_id != actor.id:
            raise PermissionDeniedError(f"Only the finder can {verb} this match")

    @staticmethod
    def _ensure_open(match: Match) -> None:
        if match.status not in OPEN_MATCH_STATUSES:
            raise InvalidTransitionError(f"Match is already {match.status.value}")

    @staticmethod
    async def _commit(db: AsyncSession) -> None:
        try:
            await db.commit()
        except StaleDataError as exc:
            await db.rollback()
            raise ConflictError("Match was modified concurrently; retry the request") from exc
        except Exception:
            await db.rollback()
            raise

    @staticmethod
    async def get_match_for_user(db: AsyncSession, match_id: uuid.UUID, user: User) -> Match:
        match = await MatchService._get_match(db, match_id)
        if not MatchService._can_view(match, user):
            # invisible matches look the same as missing ones
            raise NotFoundError("Match not found")
        return match

    @staticmethod
    async def approve_match(db: AsyncSession, match_id: uuid.UUID, actor: User) -> Match:
        """Confirm the hand-over: the lost item is found and the found item returned."""
        match = await MatchService._get_match(db, match_id, for_update=True)
        MatchService._ensure_finder(match, actor, "approve")
        MatchService._ensure_open(match)

        found_item = await item_service.get_found_item(db, match.found_item_id, for_update=True)
        if found_item.status != FoundItemStatus.ACTIVE:
            raise InvalidTransitionError(f"Found item is already {found_item.status.value}")
        lost_item = None
        if match.lost_item_id is not None:
            lost_item = await item_service.get_lost_item(db, match.lost_item_id, for_update=True)
            if lost_item.status != LostItemStatus.ACTIVE:
                raise InvalidTransitionError(f"Lost item is already {lost_item.status.value}")

        try:
            match.status = MatchStatus.APPROVED
            match.updated_at = datetime.now(timezone.utc)
            await db.flush()
            if lost_item is not None:
                await item_service.apply_lost_item_found(db, lost_item)
            await item_service.apply_found_item_returned(db, found_item)
            await AuditService.log_action(
                db,
                user_id=actor.id,
                action="MATCH_APPROVED",
                target_id=str(match.id),
                details=f"found_item={found_item.id} lost_item={match.lost_item_id}",
            )
        except StaleDataError as exc:
            await db.rollback()
            raise ConflictError("Match was modified concurrently; retry the request") from exc
        except Exception:
            await db.rollback()
            raise
        await MatchService._commit(db)
        logger.info("Match %s approved by %s", match.id, actor.id)
        return match

    @staticmethod
    async def reject_match(db: AsyncSession, match_id: uuid.UUID, actor: User) -> Match:
        match = await MatchService._get_match(db, match_id, for_update=True)
        MatchService._ensure_finder(match, actor, "reject")
        MatchService._ensure_open(match)

        match.status = MatchStatus.REJECTED
        match.updated_at = datetime.now(timezone.utc)
        await AuditService.log_action(db, user_id=actor.id, action="MATCH_REJECTED", target_id=str(match.id))
        await MatchService._commit(db)
        return match

    @staticmethod
    async def claim_found_item(
        db: AsyncSession,
        found_item_id: uuid.UUID,
        actor: User,
        answers: dict[str, str] | None = None,
    ) -> Match:
        """Manual claim on a found item that has no paired lost report."""
        found_item = await item_service.get_found_item(db, found_item_id, for_update=True)
        if found_item.user_id == actor.id:
            raise PermissionDeniedError("You cannot claim your own item")
        if found_item.status != FoundItemStatus.ACTIVE:
            raise InvalidTransitionError("This item is no longer available to claim")

        existing = await db.execute(
            select(Match.id)
            .where(Match.found_item_id == found_item.id)
            .where(Match.claimer_id == actor.id)
            .where(Match.status.in_(OPEN_MATCH_STATUSES))
        )
        if existing.first() is not None:
            raise ConflictError("You already have an open claim for this item")

        now = datetime.now(timezone.utc)
        match = Match(
            lost_item_id=None,
            found_item_id=found_item.id,
            claimer_id=actor.id,
            similarity_score=MANUAL_CLAIM_SCORE,
            status=MatchStatus.MATCHED,
            verification_answers=dict(answers or {}),
            created_at=now,
            updated_at=now,
        )
        db.add(match)
        await db.flush()
        await AuditService.log_action(
            db,
            user_id=actor.id,
            action="FOUND_ITEM_CLAIMED",
            target_id=str(found_item.id),
            details=f"match={match.id}",
        )
        await MatchService._commit(db)
        return match

    @staticmethod
    async def claim_match(
        db: AsyncSession,
        match_id: uuid.UUID,
        actor: User,
        answers: dict[str, str] | None = None,
    ) -> Match:
        """The lost item's owner claims an algorithmic suggestion."""
        match = await MatchService._get_match(db, match_id, for_update=True)
        if match.lost_item is None or match.lost_item.user_id != actor.id:
            raise PermissionDeniedError("Only the owner of the lost item can claim this match")
        if match.status != MatchStatus.PENDING:
            raise InvalidTransitionError(f"Match is already {match.status.value}")
        if match.found_item.status != FoundItemStatus.ACTIVE:
            raise InvalidTransitionError("This item is no longer available to claim")

        match.status = MatchStatus.CLAIMED
        match.claimer_id = actor.id
        match.verification_answers = dict(answers or {})
        match.updated_at = datetime.now(timezone.utc)
        await AuditService.log_action(db, user_id=actor.id, action="MATCH_CLAIMED", target_id=str(match.id))
        await MatchService._commit(db)
        return match

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    @staticmethod
    async def matches_for_lost_item(db: AsyncSession, lost_item_id: uuid.UUID) -> list[Match]:
        stmt = (
            select(Match)
            .where(Match.lost_item_id == lost_item_id)
            .order_by(Match.similarity_score.desc(), Match.created_at.asc())
        )
        return list((await db.execute(stmt)).scalars().all())

    @staticmethod
    async def matches_for_found_item(db: AsyncSession, found_item_id: uuid.UUID) -> list[Match]:
        stmt = (
            select(Match)
            .where(Match.found_item_id == found_item_id)
            .order_by(Match.similarity_score.desc(), Match.created_at.asc())
        )
        return list((await db.execute(stmt)).scalars().all())

    @staticmethod
    async def matches_for_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        status: MatchStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Match]:
        """Matches where the user is the loser, the finder or the claimer."""
        stmt = (
            select(Match)
            .outerjoin(LostItem, Match.lost_item_id == LostItem.id)
            .join(FoundItem, Match.found_item_id == FoundItem.id)
            .where(or_(LostItem.user_id == user_id, FoundItem.user_id == user_id, Match.claimer_id == user_id))
            .order_by(Match.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        if status:
            stmt = stmt.where(Match.status == status)
        return list((await db.execute(stmt)).scalars().all())
