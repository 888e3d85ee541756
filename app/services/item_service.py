"""Lost/found item store and the owner-driven status lifecycle.

Every mutation takes the acting user explicitly, checks ownership before
touching anything and commits exactly once, so a transition and its cascade
are applied together or not at all.
"""
from datetime import datetime, timedelta, timezone
import logging
import uuid

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidTransitionError, NotFoundError, PermissionDeniedError
from app.models.enums import (
    OPEN_MATCH_STATUSES,
    FoundItemStatus,
    ItemType,
    LostItemStatus,
    MatchStatus,
)
from app.models.lost_found import FoundItem, LostItem, Match
from app.models.user import User
from app.schemas.lost_found import FoundItemCreate, FoundItemUpdate, LostItemCreate, LostItemUpdate
from app.services import reputation_service
from app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

RECENT_DAYS = 30


async def get_lost_item(db: AsyncSession, item_id: uuid.UUID, *, for_update: bool = False) -> LostItem:
    stmt = select(LostItem).where(LostItem.id == item_id).execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    item = (await db.execute(stmt)).scalar_one_or_none()
    if item is None:
        raise NotFoundError("Lost item not found")
    return item


async def get_found_item(db: AsyncSession, item_id: uuid.UUID, *, for_update: bool = False) -> FoundItem:
    stmt = select(FoundItem).where(FoundItem.id == item_id).execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    item = (await db.execute(stmt)).scalar_one_or_none()
    if item is None:
        raise NotFoundError("Found item not found")
    return item


def _ensure_owner(actor: User, item: LostItem | FoundItem) -> None:
    if item.user_id != actor.id:
        raise PermissionDeniedError("Only the owner can modify this item")


def _ensure_active(item: LostItem | FoundItem) -> None:
    if item.status.value != "active":
        raise InvalidTransitionError(f"Item is already {item.status.value}")


async def cancel_open_matches(
    db: AsyncSession,
    *,
    lost_item_id: uuid.UUID | None = None,
    found_item_id: uuid.UUID | None = None,
) -> int:
    """Move the item's open matches to cancelled. Approved/rejected stay put."""
    if lost_item_id is None and found_item_id is None:
        return 0
    stmt = (
        update(Match)
        .where(Match.status.in_(OPEN_MATCH_STATUSES))
        .values(
            status=MatchStatus.CANCELLED,
            version=Match.version + 1,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session="fetch")
    )
    if lost_item_id is not None:
        stmt = stmt.where(Match.lost_item_id == lost_item_id)
    else:
        stmt = stmt.where(Match.found_item_id == found_item_id)
    result = await db.execute(stmt)
    return result.rowcount or 0


async def _commit(db: AsyncSession) -> None:
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise


# ---------------------------------------------------------------------------
# Creation / editing
# ---------------------------------------------------------------------------

async def create_lost_item(db: AsyncSession, actor: User, payload: LostItemCreate) -> LostItem:
    now = datetime.now(timezone.utc)
    item = LostItem(
        user_id=actor.id,
        item_type=payload.item_type,
        description=payload.description,
        location=payload.location,
        lost_date=payload.lost_date,
        status=LostItemStatus.ACTIVE,
        verification_questions=[q.model_dump() for q in payload.verification_questions],
        photos=list(payload.photos),
        created_at=now,
        updated_at=now,
    )
    db.add(item)
    await db.flush()
    await AuditService.log_action(
        db,
        user_id=actor.id,
        action="LOST_ITEM_CREATED",
        target_id=str(item.id),
        details=f"type={item.item_type.value}",
    )
    await _commit(db)
    return item


async def create_found_item(db: AsyncSession, actor: User, payload: FoundItemCreate) -> FoundItem:
    now = datetime.now(timezone.utc)
    item = FoundItem(
        user_id=actor.id,
        item_type=payload.item_type,
        description=payload.description,
        location=payload.location,
        found_date=payload.found_date,
        status=FoundItemStatus.ACTIVE,
        photos=list(payload.photos),
        created_at=now,
        updated_at=now,
    )
    db.add(item)
    await db.flush()
    await AuditService.log_action(
        db,
        user_id=actor.id,
        action="FOUND_ITEM_CREATED",
        target_id=str(item.id),
        details=f"type={item.item_type.value}",
    )
    await _commit(db)
    return item


async def update_lost_item(db: AsyncSession, item_id: uuid.UUID, actor: User, payload: LostItemUpdate) -> LostItem:
    item = await get_lost_item(db, item_id, for_update=True)
    _ensure_owner(actor, item)
    _ensure_active(item)

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "verification_questions" in changes:
        changes["verification_questions"] = [q.model_dump() for q in payload.verification_questions or []]
    for field, value in changes.items():
        setattr(item, field, value)
    item.updated_at = datetime.now(timezone.utc)
    await _commit(db)
    return item


async def update_found_item(db: AsyncSession, item_id: uuid.UUID, actor: User, payload: FoundItemUpdate) -> FoundItem:
    item = await get_found_item(db, item_id, for_update=True)
    _ensure_owner(actor, item)
    _ensure_active(item)

    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(item, field, value)
    item.updated_at = datetime.now(timezone.utc)
    await _commit(db)
    return item


async def delete_lost_item(db: AsyncSession, item_id: uuid.UUID, actor: User) -> None:
    item = await get_lost_item(db, item_id, for_update=True)
    _ensure_owner(actor, item)
    await db.execute(delete(Match).where(Match.lost_item_id == item.id).execution_options(synchronize_session="fetch"))
    await db.delete(item)
    await AuditService.log_action(db, user_id=actor.id, action="LOST_ITEM_DELETED", target_id=str(item_id))
    await _commit(db)


async def delete_found_item(db: AsyncSession, item_id: uuid.UUID, actor: User) -> None:
    item = await get_found_item(db, item_id, for_update=True)
    _ensure_owner(actor, item)
    await db.execute(delete(Match).where(Match.found_item_id == item.id).execution_options(synchronize_session="fetch"))
    await db.delete(item)
    await AuditService.log_action(db, user_id=actor.id, action="FOUND_ITEM_DELETED", target_id=str(item_id))
    await _commit(db)


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------

async def apply_lost_item_found(db: AsyncSession, item: LostItem) -> int:
    """active -> found plus the match cascade, without committing."""
    _ensure_active(item)
    item.status = LostItemStatus.FOUND
    item.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return await cancel_open_matches(db, lost_item_id=item.id)


async def apply_found_item_returned(db: AsyncSession, item: FoundItem) -> int:
    """active -> returned, match cascade and finder reward, without committing."""
    _ensure_active(item)
    item.status = FoundItemStatus.RETURNED
    item.updated_at = datetime.now(timezone.utc)
    await db.flush()
    cancelled = await cancel_open_matches(db, found_item_id=item.id)
    await reputation_service.increment_reputation(db, item.user_id, reputation_service.RETURN_REWARD)
    return cancelled


async def mark_lost_item_found(db: AsyncSession, item_id: uuid.UUID, actor: User) -> LostItem:
    item = await get_lost_item(db, item_id, for_update=True)
    _ensure_owner(actor, item)
    cancelled = await apply_lost_item_found(db, item)
    await AuditService.log_action(
        db,
        user_id=actor.id,
        action="LOST_ITEM_FOUND",
        target_id=str(item.id),
        details=f"cancelled_matches={cancelled}",
    )
    await _commit(db)
    logger.info("Lost item %s marked found; %s open matches cancelled", item.id, cancelled)
    return item


async def close_lost_item(db: AsyncSession, item_id: uuid.UUID, actor: User) -> LostItem:
    item = await get_lost_item(db, item_id, for_update=True)
    _ensure_owner(actor, item)
    _ensure_active(item)
    # Closing means "recovered elsewhere"; matches are left as they are.
    item.status = LostItemStatus.CLOSED
    item.updated_at = datetime.now(timezone.utc)
    await AuditService.log_action(db, user_id=actor.id, action="LOST_ITEM_CLOSED", target_id=str(item.id))
    await _commit(db)
    return item


async def mark_found_item_returned(db: AsyncSession, item_id: uuid.UUID, actor: User) -> FoundItem:
    item = await get_found_item(db, item_id, for_update=True)
    _ensure_owner(actor, item)
    cancelled = await apply_found_item_returned(db, item)
    await AuditService.log_action(
        db,
        user_id=actor.id,
        action="FOUND_ITEM_RETURNED",
        target_id=str(item.id),
        details=f"cancelled_matches={cancelled}",
    )
    await _commit(db)
    logger.info("Found item %s marked returned; %s open matches cancelled", item.id, cancelled)
    return item


async def close_found_item(db: AsyncSession, item_id: uuid.UUID, actor: User) -> FoundItem:
    item = await get_found_item(db, item_id, for_update=True)
    _ensure_owner(actor, item)
    _ensure_active(item)
    item.status = FoundItemStatus.CLOSED
    item.updated_at = datetime.now(timezone.utc)
    await db.flush()
    cancelled = await cancel_open_matches(db, found_item_id=item.id)
    await AuditService.log_action(
        db,
        user_id=actor.id,
        action="FOUND_ITEM_CLOSED",
        target_id=str(item.id),
        details=f"cancelled_matches={cancelled}",
    )
    await _commit(db)
    return item


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def list_user_lost_items(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    item_type: ItemType | None = None,
    location: str | None = None,
) -> list[LostItem]:
    stmt = select(LostItem).where(LostItem.user_id == user_id).order_by(LostItem.created_at.desc())
    if item_type:
        stmt = stmt.where(LostItem.item_type == item_type)
    if location:
        stmt = stmt.where(LostItem.location == location)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_user_found_items(db: AsyncSession, user_id: uuid.UUID) -> list[FoundItem]:
    stmt = select(FoundItem).where(FoundItem.user_id == user_id).order_by(FoundItem.found_date.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_active_lost_items(db: AsyncSession, *, limit: int = 50, offset: int = 0) -> list[LostItem]:
    stmt = (
        select(LostItem)
        .where(LostItem.status == LostItemStatus.ACTIVE)
        .order_by(LostItem.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def found_item_feed(db: AsyncSession, *, limit: int = 50, offset: int = 0) -> list[FoundItem]:
    stmt = (
        select(FoundItem)
        .where(FoundItem.status == FoundItemStatus.ACTIVE)
        .order_by(FoundItem.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def dashboard_summary(db: AsyncSession, user: User) -> dict:
    """Recent active items, open matches and a merged activity feed for one user."""
    recent_cutoff = datetime.now(timezone.utc).date() - timedelta(days=RECENT_DAYS)

    lost_items = list((await db.execute(
        select(LostItem)
        .where(LostItem.user_id == user.id, LostItem.status == LostItemStatus.ACTIVE, LostItem.lost_date >= recent_cutoff)
        .order_by(LostItem.created_at.desc())
        .limit(5)
    )).scalars().all())
    found_items = list((await db.execute(
        select(FoundItem)
        .where(FoundItem.user_id == user.id, FoundItem.status == FoundItemStatus.ACTIVE, FoundItem.found_date >= recent_cutoff)
        .order_by(FoundItem.created_at.desc())
        .limit(5)
    )).scalars().all())

    involved = or_(LostItem.user_id == user.id, FoundItem.user_id == user.id, Match.claimer_id == user.id)
    matches_stmt = (
        select(Match)
        .outerjoin(LostItem, Match.lost_item_id == LostItem.id)
        .join(FoundItem, Match.found_item_id == FoundItem.id)
        .where(involved)
        .order_by(Match.created_at.desc())
    )
    open_matches = list((await db.execute(
        matches_stmt.where(Match.status.in_(OPEN_MATCH_STATUSES)).limit(5)
    )).scalars().all())
    recent_matches = list((await db.execute(matches_stmt.limit(10))).scalars().all())

    activity: list[dict] = []
    for item in lost_items:
        activity.append({
            "type": "lost_item",
            "id": str(item.id),
            "date": item.created_at,
            "description": f"Posted lost {item.item_type.value}",
        })
    for item in found_items:
        activity.append({
            "type": "found_item",
            "id": str(item.id),
            "date": item.created_at,
            "description": f"Posted found {item.item_type.value}",
        })
    for match in recent_matches:
        activity.append({
            "type": "match",
            "id": str(match.id),
            "date": match.created_at,
            "description": f"New match found ({round(match.similarity_score * 100)}% similarity)",
        })
    activity.sort(key=lambda entry: _sortable(entry["date"]), reverse=True)

    return {
        "active_lost_items": lost_items,
        "active_found_items": found_items,
        "open_matches": open_matches,
        "recent_activity": activity[:10],
        "reputation_score": user.reputation_score,
        "good_samaritan": user.good_samaritan,
    }


def _sortable(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; treat them as UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
