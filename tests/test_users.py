import uuid

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.auth.schemas import UserUpdate
from app.core.exceptions import NotFoundError, ValidationFailedError
from app.models.enums import ContactPreference, ProfileVisibility
from app.models.user import User
from app.services import reputation_service, user_service


def test_uni_is_derived_from_the_email_local_part():
    assert user_service.uni_from_email("AB1234@columbia.edu") == "ab1234"


@pytest.mark.parametrize(
    "email, errors",
    [
        ("ab1234@columbia.edu", {}),
        ("abc1234@columbia.edu", {}),
        ("", {"email": ["can't be blank"]}),
        ("ab1234@gmail.com", {"email": ["must be a @columbia.edu address"]}),
        ("john.smith@columbia.edu", {"uni": ["is invalid"]}),
        ("a12345@columbia.edu", {"uni": ["is invalid"]}),
    ],
)
def test_validate_registration(email, errors):
    assert user_service.validate_registration(email) == errors


@pytest.mark.asyncio
async def test_register_user_is_auto_verified(db_session):
    user = await user_service.register_user(db_session, " AB1234@columbia.edu ", "Alex Barnes")

    assert user.email == "ab1234@columbia.edu"
    assert user.uni == "ab1234"
    assert user.full_name == "Alex Barnes"
    assert user.verified is True
    assert user.reputation_score == 0
    assert user.good_samaritan is False


@pytest.mark.asyncio
async def test_register_rejects_non_institutional_email(db_session):
    with pytest.raises(ValidationFailedError) as excinfo:
        await user_service.register_user(db_session, "ab1234@gmail.com")
    assert excinfo.value.errors == {"email": ["must be a @columbia.edu address"]}


@pytest.mark.asyncio
async def test_register_twice_reports_taken_fields(db_session):
    await user_service.register_user(db_session, "ab1234@columbia.edu")

    with pytest.raises(ValidationFailedError) as excinfo:
        await user_service.register_user(db_session, "ab1234@columbia.edu")
    assert excinfo.value.errors == {
        "email": ["has already been taken"],
        "uni": ["has already been taken"],
    }


@pytest.mark.asyncio
async def test_get_user_raises_for_unknown_id(db_session):
    with pytest.raises(NotFoundError):
        await user_service.get_user(db_session, uuid.uuid4())


@pytest.mark.asyncio
async def test_increment_reputation(db_session, make_user):
    user = await make_user("ab1234", reputation_score=8)

    assert await reputation_service.increment_reputation(db_session, user.id, 2) == 10
    await db_session.commit()

    assert user.reputation_score == 10
    assert user.good_samaritan is True


@pytest.mark.asyncio
async def test_reputation_only_grows(db_session, make_user):
    user = await make_user("ab1234")

    with pytest.raises(ValueError):
        await reputation_service.increment_reputation(db_session, user.id, 0)
    with pytest.raises(ValueError):
        await reputation_service.increment_reputation(db_session, user.id, -5)
    with pytest.raises(NotFoundError):
        await reputation_service.increment_reputation(db_session, uuid.uuid4(), 1)


@pytest.mark.asyncio
async def test_update_profile_sets_fields_and_last_active(db_session, make_user):
    user = await make_user("ab1234")
    assert user.last_active_at is None
    assert user.profile_completion == 0

    updated = await user_service.update_profile(db_session, user, {
        "first_name": "Jane",
        "last_name": "Smith",
        "bio": "Physics major, usually in Butler",
        "phone": "555-987-6543",
        "contact_preference": ContactPreference.PHONE,
        "profile_visibility": ProfileVisibility.PRIVATE,
    })

    assert updated.display_name == "Jane Smith"
    assert updated.contact_preference == ContactPreference.PHONE
    assert updated.profile_visibility == ProfileVisibility.PRIVATE
    assert updated.last_active_at is not None
    assert updated.profile_completion == 80


@pytest.mark.asyncio
async def test_phone_contact_needs_a_phone_number(db_session, make_user):
    user = await make_user("ab1234")

    with pytest.raises(ValidationFailedError) as excinfo:
        await user_service.update_profile(db_session, user, {"contact_preference": ContactPreference.PHONE})
    assert list(excinfo.value.errors) == ["phone"]

    with pytest.raises(ValidationFailedError):
        await user_service.update_profile(db_session, user, {"profile_visibility": None})

    await db_session.refresh(user)
    assert user.contact_preference == ContactPreference.EMAIL
    assert user.last_active_at is None


def test_display_name_falls_back_to_full_name_then_uni():
    assert User(uni="ab1234", first_name="Jo", last_name="Do").display_name == "Jo Do"
    assert User(uni="ab1234", full_name="Alex Barnes").display_name == "Alex Barnes"
    assert User(uni="ab1234").display_name == "ab1234"


@pytest.mark.parametrize(
    "payload",
    [
        {"first_name": "A"},
        {"last_name": "x" * 51},
        {"phone": "invalid-phone"},
        {"contact_preference": "carrier pigeon"},
        {"profile_visibility": "friends"},
        {"profile_photo": "ftp://example.com/me.png"},
    ],
)
def test_user_update_rejects_bad_values(payload):
    with pytest.raises(PydanticValidationError):
        UserUpdate(**payload)


def test_user_update_treats_blank_strings_as_cleared():
    assert UserUpdate(phone="  ", bio="").model_dump(exclude_unset=True) == {"phone": None, "bio": None}


@pytest.mark.asyncio
async def test_private_profiles_are_only_visible_to_their_owner(db_session, make_user):
    owner = await make_user("ab1234", profile_visibility=ProfileVisibility.PRIVATE)
    other = await make_user("cd5678")

    assert (await user_service.get_visible_user(db_session, owner.id, owner)).id == owner.id
    assert (await user_service.get_visible_user(db_session, other.id, owner)).id == other.id
    with pytest.raises(NotFoundError):
        await user_service.get_visible_user(db_session, owner.id, other)
