"""Candidate selection and match materialisation for newly created items."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
import logging
import uuid

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import FoundItemStatus, ItemKind, LostItemStatus, MatchStatus
from app.models.lost_found import FoundItem, LostItem, Match
from app.services import similarity
from app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

MATCH_THRESHOLD = 0.5
CANDIDATE_LIMIT = 5
DATE_WINDOW_DAYS = 7


@dataclass(frozen=True)
class MatchJob:
    """Descriptor pushed onto the match queue after an item is persisted."""
    kind: ItemKind
    item_id: uuid.UUID
    attempt: int = 1

    def retry(self) -> "MatchJob":
        return MatchJob(kind=self.kind, item_id=self.item_id, attempt=self.attempt + 1)


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _closest_first(candidates: list, target: date) -> list:
    """Nearest date first, then oldest report, then id; capped at CANDIDATE_LIMIT."""
    ordered = sorted(
        candidates,
        key=lambda item: (similarity.days_apart(item.item_date, target), _utc(item.created_at), item.id),
    )
    return ordered[:CANDIDATE_LIMIT]


class MatchFinder:
    @staticmethod
    async def run(db: AsyncSession, job: MatchJob | None) -> list[Match]:
        """Dispatch a queued job to the entry point for its item kind.

        Unknown kinds, missing ids and items deleted or resolved before the
        job ran are ignored: matching is best effort and never fails the caller.
        """
        if job is None or job.item_id is None:
            logger.warning("Ignoring match job without an item: %r", job)
            return []

        if job.kind == ItemKind.LOST:
            lost_item = await db.get(LostItem, job.item_id, populate_existing=True)
            if lost_item is None:
                logger.warning("Lost item %s no longer exists; skipping match search", job.item_id)
                return []
            return await MatchFinder.on_lost_item_created(db, lost_item)

        if job.kind == ItemKind.FOUND:
            found_item = await db.get(FoundItem, job.item_id, populate_existing=True)
            if found_item is None:
                logger.warning("Found item %s no longer exists; skipping match search", job.item_id)
                return []
            return await MatchFinder.on_found_item_created(db, found_item)

        logger.warning("Ignoring match job with unknown item kind %r", job.kind)
        return []

    @staticmethod
    async def on_lost_item_created(db: AsyncSession, lost_item: LostItem) -> list[Match]:
        if lost_item.status != LostItemStatus.ACTIVE:
            logger.warning("Lost item %s is %s; skipping match search", lost_item.id, lost_item.status.value)
            return []
        window = timedelta(days=DATE_WINDOW_DAYS)
        stmt = (
            select(FoundItem)
            .where(
                FoundItem.status == FoundItemStatus.ACTIVE,
                FoundItem.item_type == lost_item.item_type,
                FoundItem.found_date >= lost_item.lost_date - window,
                FoundItem.found_date <= lost_item.lost_date + window,
                FoundItem.user_id != lost_item.user_id,
            )
        )
        candidates = _closest_first(list((await db.execute(stmt)).scalars().all()), lost_item.lost_date)
        pairs = [(lost_item, found_item) for found_item in candidates]
        return await MatchFinder._score_and_persist(db, pairs, trigger=lost_item)

    @staticmethod
    async def on_found_item_created(db: AsyncSession, found_item: FoundItem) -> list[Match]:
        if found_item.status != FoundItemStatus.ACTIVE:
            logger.warning("Found item %s is %s; skipping match search", found_item.id, found_item.status.value)
            return []
        window = timedelta(days=DATE_WINDOW_DAYS)
        stmt = (
            select(LostItem)
            .where(
                LostItem.status == LostItemStatus.ACTIVE,
                LostItem.item_type == found_item.item_type,
                LostItem.lost_date >= found_item.found_date - window,
                LostItem.lost_date <= found_item.found_date + window,
                LostItem.user_id != found_item.user_id,
            )
        )
        candidates = _closest_first(list((await db.execute(stmt)).scalars().all()), found_item.found_date)
        pairs = [(lost_item, found_item) for lost_item in candidates]
        return await MatchFinder._score_and_persist(db, pairs, trigger=found_item)

    @staticmethod
    async def _existing_pairs(db: AsyncSession, pairs: list[tuple[LostItem, FoundItem]]) -> set[tuple[uuid.UUID, uuid.UUID]]:
        if not pairs:
            return set()
        conditions = [
            and_(Match.lost_item_id == lost.id, Match.found_item_id == found.id)
            for lost, found in pairs
        ]
        result = await db.execute(select(Match.lost_item_id, Match.found_item_id).where(or_(*conditions)))
        return {(row[0], row[1]) for row in result.all()}

    @staticmethod
    async def _score_and_persist(
        db: AsyncSession,
        pairs: list[tuple[LostItem, FoundItem]],
        *,
        trigger: LostItem | FoundItem,
    ) -> list[Match]:
        existing = await MatchFinder._existing_pairs(db, pairs)
        created: list[Match] = []

        for lost_item, found_item in pairs:
            if (lost_item.id, found_item.id) in existing:
                continue
            try:
                score = similarity.score(lost_item, found_item)
            except Exception:
                logger.exception(
                    "Scoring failed for lost item %s / found item %s; skipping candidate",
                    lost_item.id,
                    found_item.id,
                )
                continue
            if score < MATCH_THRESHOLD:
                continue

            match = Match(
                lost_item_id=lost_item.id,
                found_item_id=found_item.id,
                similarity_score=score,
                status=MatchStatus.PENDING,
                verification_answers={},
            )
            db.add(match)
            created.append(match)

        if created:
            await AuditService.log_action(
                db,
                user_id=None,
                action="MATCHES_FOUND",
                target_id=str(trigger.id),
                details=f"created={len(created)} candidates={len(pairs)}",
            )
        try:
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Match search for %s: %s candidates, %s matches created",
            trigger.id,
            len(pairs),
            len(created),
        )
        return created
