import asyncio
import logging

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from app.config import Settings, settings
from app.database import DocumentStore, utcnow_iso
from app.models import USER_TOKENS

logger = logging.getLogger(__name__)


class CredentialRefresher:
    """Exchange a stored Drive refresh token for a fresh access token."""

    def __init__(self, store: DocumentStore, config: Settings = settings) -> None:
        self.store = store
        self.config = config

    async def refresh(self, user_id: str, refresh_token: str) -> str | None:
        """Mint a new access token and save it on the user's token record.

        Returns ``None`` when the OAuth client is not configured or Google
        rejects the refresh token; the caller must fail the file rather than
        fall back to the stale token.
        """
        if not (self.config.google_client_id and self.config.google_client_secret):
            logger.error("Cannot refresh Drive token for %s: OAuth client not configured", user_id)
            return None

        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=self.config.google_token_uri,
            client_id=self.config.google_client_id,
            client_secret=self.config.google_client_secret,
        )
        try:
            await asyncio.to_thread(credentials.refresh, Request())
        except (RefreshError, TransportError) as e:
            logger.error("Failed to refresh Drive token for %s: %s", user_id, e)
            return None

        await self.store.set(
            USER_TOKENS,
            user_id,
            {"userId": user_id, "driveAccessToken": credentials.token, "updatedAt": utcnow_iso()},
            merge=True,
        )
        logger.info("Refreshed Drive access token for %s", user_id)
        return credentials.token
