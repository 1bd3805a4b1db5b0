"""
Test cases for session and user construction rules.
"""
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from estatehub.auth.domain import Session, User, avatar_data_uri, validate_avatar
from estatehub.auth.errors import MAX_AVATAR_SIZE_BYTES, MAX_LENGTH_TOKEN, Result
from estatehub.auth.models import utcnow


def _future():
    return utcnow() + timedelta(days=1)


def test_session_create_success():
    user_id = uuid.uuid4()
    result = Session.create(user_id, "access", "refresh", _future())
    assert result.is_success
    assert result.value.user_id == user_id
    assert result.value.id is None

    session_id = uuid.uuid4()
    assert result.value.with_id(session_id).id == session_id


@pytest.mark.parametrize("user_id", [None, uuid.UUID(int=0)])
def test_session_requires_user_id(user_id):
    result = Session.create(user_id, "access", "refresh", _future())
    assert result.error.code == "Sessions.EmptyUserId"


@pytest.mark.parametrize("access_token,code", [
    (None, "Sessions.InvalidAccessToken"),
    ("   ", "Sessions.InvalidAccessToken"),
    ("a" * (MAX_LENGTH_TOKEN + 1), "Sessions.AccessTokenTooLong"),
])
def test_session_access_token_rules(access_token, code):
    result = Session.create(uuid.uuid4(), access_token, "refresh", _future())
    assert result.error.code == code


@pytest.mark.parametrize("refresh_token,code", [
    ("", "Sessions.InvalidRefreshToken"),
    ("r" * (MAX_LENGTH_TOKEN + 1), "Sessions.RefreshTokenTooLong"),
])
def test_session_refresh_token_rules(refresh_token, code):
    result = Session.create(uuid.uuid4(), "access", refresh_token, _future())
    assert result.error.code == code


def test_session_token_at_max_length_is_accepted():
    token = "t" * MAX_LENGTH_TOKEN
    assert Session.create(uuid.uuid4(), token, token, _future()).is_success


def test_session_rejects_past_expiration():
    result = Session.create(uuid.uuid4(), "access", "refresh", utcnow() - timedelta(seconds=1))
    assert result.error.code == "Sessions.InvalidExpirationTime"
    assert result.error.status == 400


def test_session_normalises_aware_expiration():
    aware = datetime.now(timezone(timedelta(hours=3))) + timedelta(hours=1)
    result = Session.create(uuid.uuid4(), "access", "refresh", aware)
    assert result.is_success
    assert result.value.expiration_date.tzinfo is None


def test_user_create_defaults():
    result = User.create("a@b.com", None, None, "Valid123!@#")
    assert result.is_success
    user = result.value
    assert user.display_name == "a@b.com"
    assert user.user_name.startswith("a@b.com_")
    assert user.id is not None
    assert user.user_name.endswith(user.id.hex[:8])


def test_user_create_keeps_given_user_name():
    result = User.create("a@b.com", "Alice", "alice", "Valid123!@#")
    assert result.value.user_name == "alice"
    assert result.value.display_name == "Alice"
    assert result.value.id is None


@pytest.mark.parametrize("email", ["", "plainaddress", " a@b.com", "a@b.com.", "a@" + "b" * 320 + ".com"])
def test_user_create_rejects_bad_email(email):
    assert User.create(email, None, None, "Valid123!@#").error.code == "Users.InvalidEmail"


def test_user_create_rejects_long_display_name():
    result = User.create("a@b.com", "x" * 51, None, "Valid123!@#")
    assert result.error.code == "Users.InvalidDisplayNameLength"
    assert "but was 51" in result.error.description


def test_user_create_rejects_blank_password():
    assert User.create("a@b.com", None, None, "  ").error.code == "Users.InvalidPassword"


def test_user_update_requires_display_name():
    assert User.update(uuid.uuid4(), " ").error.code == "Users.InvalidDisplayName"


def test_user_update_validates_avatar(make_png):
    result = User.update(uuid.uuid4(), "Alice", make_png(64, 32), "image/png")
    assert result.error.code == "Users.AvatarMustBeSquare"
    assert "64x32" in result.error.description


def test_user_update_requires_avatar_content_type(make_png):
    result = User.update(uuid.uuid4(), "Alice", make_png(64, 64), None)
    assert result.error.code == "Users.InvalidAvatarType"


def test_avatar_accepts_square_png(make_png):
    assert validate_avatar(make_png(64, 64), "image/png").is_success


def test_avatar_size_is_checked_first():
    result = validate_avatar(b"\0" * (MAX_AVATAR_SIZE_BYTES + 1), "image/gif")
    assert result.error.code == "Users.AvatarTooLarge"


def test_avatar_type_is_checked_before_content(make_png):
    assert validate_avatar(make_png(), "image/gif").error.code == "Users.InvalidAvatarType"


def test_avatar_rejects_non_image_bytes():
    result = validate_avatar(b"definitely not a png", "image/png")
    assert result.error.code == "Users.InvalidImageFormat"


def test_avatar_rejects_small_images(make_png):
    assert validate_avatar(make_png(16, 16), "image/png").error.code == "Users.AvatarTooSmall"


def test_avatar_data_uri():
    assert avatar_data_uri(None, None) == ""
    assert avatar_data_uri(b"abc", "image/png") == "data:image/png;base64,YWJj"
    assert avatar_data_uri(b"abc", None).startswith("data:image/jpeg;base64,")


def test_failed_result_needs_an_error():
    with pytest.raises(ValueError):
        Result.failure()
