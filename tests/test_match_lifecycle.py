import pytest
from sqlalchemy import select, update

from app.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
)
from app.models.audit import AuditLog
from app.models.enums import FoundItemStatus, LostItemStatus, MatchStatus
from app.models.lost_found import Match
from app.services import item_service, reputation_service
from app.services.match_service import MANUAL_CLAIM_SCORE, MatchService, verification_ratio


@pytest.fixture
async def suggestion(make_user, make_lost_item, make_found_item, make_match):
    loser = await make_user("ab1234")
    finder = await make_user("cd5678")
    lost = await make_lost_item(loser)
    found = await make_found_item(finder)
    match = await make_match(found, lost, similarity_score=0.95)
    return loser, finder, lost, found, match


@pytest.mark.asyncio
async def test_finder_approval_closes_both_items_and_rewards_finder(db_session, suggestion, make_lost_item, make_match):
    loser, finder, lost, found, match = suggestion
    other_lost = await make_lost_item(loser, description="Another phone report")
    competing = await make_match(found, other_lost)

    approved = await MatchService.approve_match(db_session, match.id, finder)

    assert approved.status == MatchStatus.APPROVED
    for row in (lost, found, finder, competing):
        await db_session.refresh(row)
    assert lost.status == LostItemStatus.FOUND
    assert found.status == FoundItemStatus.RETURNED
    assert finder.reputation_score == 5
    assert competing.status == MatchStatus.CANCELLED

    actions = (await db_session.execute(select(AuditLog.action))).scalars().all()
    assert "MATCH_APPROVED" in actions


@pytest.mark.asyncio
async def test_approval_by_anyone_but_the_finder_is_rejected(db_session, suggestion, make_user):
    loser, finder, lost, found, match = suggestion
    stranger = await make_user("ef9012")

    for actor in (loser, stranger):
        with pytest.raises(PermissionDeniedError):
            await MatchService.approve_match(db_session, match.id, actor)

    for row in (match, lost, found, finder):
        await db_session.refresh(row)
    assert match.status == MatchStatus.PENDING
    assert lost.status == LostItemStatus.ACTIVE
    assert found.status == FoundItemStatus.ACTIVE
    assert finder.reputation_score == 0


@pytest.mark.asyncio
async def test_decided_matches_cannot_be_decided_again(db_session, suggestion):
    loser, finder, lost, found, match = suggestion

    await MatchService.reject_match(db_session, match.id, finder)

    with pytest.raises(InvalidTransitionError):
        await MatchService.approve_match(db_session, match.id, finder)
    with pytest.raises(InvalidTransitionError):
        await MatchService.reject_match(db_session, match.id, finder)


@pytest.mark.asyncio
async def test_reject_leaves_items_active(db_session, suggestion):
    loser, finder, lost, found, match = suggestion

    rejected = await MatchService.reject_match(db_session, match.id, finder)

    assert rejected.status == MatchStatus.REJECTED
    await db_session.refresh(lost)
    await db_session.refresh(found)
    assert lost.status == LostItemStatus.ACTIVE
    assert found.status == FoundItemStatus.ACTIVE


@pytest.mark.asyncio
async def test_approve_requires_an_active_found_item(db_session, suggestion):
    loser, finder, lost, found, match = suggestion
    found.status = FoundItemStatus.CLOSED
    await db_session.commit()

    with pytest.raises(InvalidTransitionError):
        await MatchService.approve_match(db_session, match.id, finder)


@pytest.mark.asyncio
async def test_manual_claim_on_a_found_item(db_session, make_user, make_found_item):
    finder = await make_user("cd5678")
    claimer = await make_user("ab1234")
    found = await make_found_item(finder)

    match = await MatchService.claim_found_item(db_session, found.id, claimer, {"0": "blue case"})

    assert match.lost_item_id is None
    assert match.claimer_id == claimer.id
    assert match.similarity_score == MANUAL_CLAIM_SCORE
    assert match.status == MatchStatus.MATCHED
    assert match.verification_answers == {"0": "blue case"}

    with pytest.raises(ConflictError):
        await MatchService.claim_found_item(db_session, found.id, claimer)


@pytest.mark.asyncio
async def test_claims_by_owner_or_on_inactive_items_are_refused(db_session, make_user, make_found_item):
    finder = await make_user("cd5678")
    claimer = await make_user("ab1234")
    found = await make_found_item(finder)
    returned = await make_found_item(finder, status=FoundItemStatus.RETURNED)

    with pytest.raises(PermissionDeniedError):
        await MatchService.claim_found_item(db_session, found.id, finder)
    with pytest.raises(InvalidTransitionError):
        await MatchService.claim_found_item(db_session, returned.id, claimer)


@pytest.mark.asyncio
async def test_manual_claim_can_be_approved(db_session, make_user, make_found_item):
    finder = await make_user("cd5678")
    claimer = await make_user("ab1234")
    found = await make_found_item(finder)
    match = await MatchService.claim_found_item(db_session, found.id, claimer)

    approved = await MatchService.approve_match(db_session, match.id, finder)

    assert approved.status == MatchStatus.APPROVED
    await db_session.refresh(found)
    await db_session.refresh(finder)
    assert found.status == FoundItemStatus.RETURNED
    assert finder.reputation_score == 5


@pytest.mark.asyncio
async def test_loser_claims_a_suggestion_with_answers(db_session, suggestion, make_user):
    loser, finder, lost, found, match = suggestion
    stranger = await make_user("ef9012")

    with pytest.raises(PermissionDeniedError):
        await MatchService.claim_match(db_session, match.id, stranger, {"0": "gold"})
    with pytest.raises(PermissionDeniedError):
        await MatchService.claim_match(db_session, match.id, finder, {"0": "gold"})

    claimed = await MatchService.claim_match(db_session, match.id, loser, {"0": "gold"})

    assert claimed.status == MatchStatus.CLAIMED
    assert claimed.claimer_id == loser.id
    assert claimed.verification_answers == {"0": "gold"}

    with pytest.raises(InvalidTransitionError):
        await MatchService.claim_match(db_session, match.id, loser)


@pytest.mark.asyncio
async def test_visibility_is_limited_to_participants(db_session, suggestion, make_user):
    loser, finder, lost, found, match = suggestion
    stranger = await make_user("ef9012")

    assert (await MatchService.get_match_for_user(db_session, match.id, loser)).id == match.id
    assert (await MatchService.get_match_for_user(db_session, match.id, finder)).id == match.id
    with pytest.raises(NotFoundError):
        await MatchService.get_match_for_user(db_session, match.id, stranger)


@pytest.mark.asyncio
async def test_match_queries_order_by_score_and_cover_every_role(
    db_session, make_user, make_lost_item, make_found_item, make_match
):
    loser = await make_user("ab1234")
    finder = await make_user("cd5678")
    claimer = await make_user("ef9012")
    lost = await make_lost_item(loser)
    weak = await make_match(await make_found_item(finder), lost, similarity_score=0.55)
    strong = await make_match(await make_found_item(finder), lost, similarity_score=0.9)
    found = await make_found_item(finder)
    claim = await MatchService.claim_found_item(db_session, found.id, claimer)

    by_lost = await MatchService.matches_for_lost_item(db_session, lost.id)
    assert [m.id for m in by_lost] == [strong.id, weak.id]

    assert {m.id for m in await MatchService.matches_for_user(db_session, loser.id)} == {weak.id, strong.id}
    assert {m.id for m in await MatchService.matches_for_user(db_session, finder.id)} == {weak.id, strong.id, claim.id}
    assert [m.id for m in await MatchService.matches_for_user(db_session, claimer.id)] == [claim.id]

    matched_only = await MatchService.matches_for_user(db_session, finder.id, status=MatchStatus.MATCHED)
    assert [m.id for m in matched_only] == [claim.id]


@pytest.mark.asyncio
async def test_verification_ratio(make_user, make_lost_item):
    owner = await make_user("ab1234")
    lost = await make_lost_item(owner, verification_questions=[
        {"question": "Case colour?", "answer": "Blue"},
        {"question": "Lock screen photo?", "answer": "my  dog"},
    ])

    assert verification_ratio(lost, {"0": " blue ", "1": "My Dog"}) == 1.0
    assert verification_ratio(lost, {"0": "red"}) == 0.0
    assert verification_ratio(lost, {"1": "my dog"}) == 0.5
    assert verification_ratio(None, {"0": "blue"}) is None


@pytest.mark.asyncio
async def test_failed_approval_leaves_nothing_behind(db_session, suggestion, make_lost_item, make_match, monkeypatch):
    loser, finder, lost, found, match = suggestion
    competing = await make_match(found, await make_lost_item(loser, description="Another phone report"))

    async def broken_reward(db, user_id, points=1):
        raise RuntimeError("reputation store unavailable")

    monkeypatch.setattr(reputation_service, "increment_reputation", broken_reward)

    with pytest.raises(RuntimeError):
        await MatchService.approve_match(db_session, match.id, finder)

    for row in (match, competing, lost, found, finder):
        await db_session.refresh(row)
    assert match.status == MatchStatus.PENDING
    assert competing.status == MatchStatus.PENDING
    assert lost.status == LostItemStatus.ACTIVE
    assert found.status == FoundItemStatus.ACTIVE
    assert finder.reputation_score == 0
    actions = (await db_session.execute(select(AuditLog.action))).scalars().all()
    assert "MATCH_APPROVED" not in actions


@pytest.mark.asyncio
async def test_concurrent_update_surfaces_as_conflict(db_session, session_factory, suggestion, monkeypatch):
    loser, finder, lost, found, match = suggestion
    real_get_found_item = item_service.get_found_item

    async def get_found_item_then_touch_match(db, item_id, **kwargs):
        item = await real_get_found_item(db, item_id, **kwargs)
        async with session_factory() as other:
            await other.execute(
                update(Match).where(Match.id == match.id).values(version=Match.version + 1)
            )
            await other.commit()
        return item

    monkeypatch.setattr(item_service, "get_found_item", get_found_item_then_touch_match)

    with pytest.raises(ConflictError):
        await MatchService.approve_match(db_session, match.id, finder)

    await db_session.refresh(match)
    await db_session.refresh(lost)
    assert match.status == MatchStatus.PENDING
    assert match.version == 2
    assert lost.status == LostItemStatus.ACTIVE
