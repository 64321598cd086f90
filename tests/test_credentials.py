from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials

from app.config import Settings
from app.models import USER_TOKENS
from app.services.credentials import CredentialRefresher

CONFIGURED = Settings(google_client_id="client-id", google_client_secret="client-secret")


async def test_refresh_persists_and_returns_new_token(store, monkeypatch):
    seen = {}

    def fake_refresh(self, request):
        seen["refresh_token"] = self.refresh_token
        self.token = "fresh-access-token"

    monkeypatch.setattr(Credentials, "refresh", fake_refresh)
    await store.set(USER_TOKENS, "user-1", {"userId": "user-1", "driveRefreshToken": "r-1"})

    token = await CredentialRefresher(store, CONFIGURED).refresh("user-1", "r-1")

    assert token == "fresh-access-token"
    assert seen["refresh_token"] == "r-1"
    saved = await store.get(USER_TOKENS, "user-1")
    assert saved["driveAccessToken"] == "fresh-access-token"
    assert saved["driveRefreshToken"] == "r-1"
    assert saved["updatedAt"]


async def test_provider_rejection_returns_none(store, monkeypatch):
    def rejected(self, request):
        raise RefreshError("invalid_grant: Token has been expired or revoked.")

    monkeypatch.setattr(Credentials, "refresh", rejected)

    assert await CredentialRefresher(store, CONFIGURED).refresh("user-1", "r-1") is None
    assert await store.get(USER_TOKENS, "user-1") is None


async def test_missing_oauth_client_returns_none(store, monkeypatch):
    def must_not_call(self, request):
        raise AssertionError("refresh attempted without client configuration")

    monkeypatch.setattr(Credentials, "refresh", must_not_call)
    unconfigured = Settings(google_client_id=None, google_client_secret=None)

    assert await CredentialRefresher(store, unconfigured).refresh("user-1", "r-1") is None
