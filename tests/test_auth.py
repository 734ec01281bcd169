"""Tests for the local credential cache."""
import time

import jwt
import pytest

from strength_coach_client.auth import TOKEN_FILE, USER_FILE, CredentialStore, token_expired
from strength_coach_client.models import AuthUser

SECRET = "test-secret"


def make_jwt(**claims) -> str:
    return jwt.encode(claims, SECRET, algorithm="HS256")


@pytest.fixture
def user() -> AuthUser:
    return AuthUser(email="sam@example.com", user_name="Sam", has_linked_athlete=True, athlete_id=7)


class TestTokenExpired:

    def test_future_exp(self):
        assert token_expired(make_jwt(sub="1", exp=int(time.time()) + 3600)) is False

    def test_past_exp(self):
        assert token_expired(make_jwt(sub="1", exp=int(time.time()) - 10)) is True

    def test_explicit_now(self):
        token = make_jwt(exp=1_000)
        assert token_expired(token, now=999) is False
        assert token_expired(token, now=1_000) is True

    def test_no_exp_claim(self):
        assert token_expired(make_jwt(sub="1")) is False

    def test_opaque_token(self):
        """Non-JWT tokens are left for the server to judge."""
        assert token_expired("abc123opaque") is False


class TestCredentialStore:

    def test_login_persists(self, tmp_path, user):
        store = CredentialStore(directory=tmp_path)
        store.login(user, "tok")

        assert store.is_authenticated is True
        assert (tmp_path / TOKEN_FILE).read_text() == "tok"
        assert "sam@example.com" in (tmp_path / USER_FILE).read_text()

    def test_restore_round_trip(self, tmp_path, user):
        CredentialStore(directory=tmp_path).login(user, "tok")

        restored = CredentialStore(directory=tmp_path)
        assert restored.restore() is True
        assert restored.token == "tok"
        assert restored.user == user

    def test_restore_nothing(self, tmp_path):
        store = CredentialStore(directory=tmp_path)
        assert store.restore() is False
        assert store.token is None

    def test_restore_corrupt_user_clears(self, tmp_path):
        (tmp_path / TOKEN_FILE).write_text("tok")
        (tmp_path / USER_FILE).write_text("{not json")

        store = CredentialStore(directory=tmp_path)
        assert store.restore() is False
        assert not (tmp_path / TOKEN_FILE).exists()
        assert not (tmp_path / USER_FILE).exists()

    def test_restore_expired_jwt_clears(self, tmp_path, user):
        CredentialStore(directory=tmp_path).login(user, make_jwt(exp=int(time.time()) - 60))

        store = CredentialStore(directory=tmp_path)
        assert store.restore() is False
        assert store.user is None
        assert not (tmp_path / USER_FILE).exists()

    def test_login_without_token_removes_old_token(self, tmp_path, user):
        store = CredentialStore(directory=tmp_path)
        store.login(user, "tok")
        store.login(user, None)

        assert not (tmp_path / TOKEN_FILE).exists()
        assert store.is_authenticated is True

    def test_clear(self, tmp_path, user):
        store = CredentialStore(directory=tmp_path)
        store.login(user, "tok")
        store.clear()

        assert store.token is None
        assert store.is_authenticated is False
        assert list(tmp_path.iterdir()) == []

    def test_default_directory_from_settings(self, tmp_path):
        from strength_coach_client.config import settings

        assert CredentialStore().directory == settings.CREDENTIALS_DIR
