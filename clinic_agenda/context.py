# clinic_agenda/context.py
import logging
from typing import Optional

from starlette.requests import HTTPConnection

from .config import Settings
from .database import create_client, get_appointments_collection
from .service.crud_appointments import AppointmentStore
from .service.identity import IdentityProvider, google_token_verifier
from .utils.clock import today_iso

logger = logging.getLogger(__name__)


class AppContext:
    """Everything a request handler needs, built once at startup and closed at shutdown."""

    def __init__(self, settings: Settings, store: AppointmentStore,
                 identity: IdentityProvider, client=None):
        self.settings = settings
        self.store = store
        self.identity = identity
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        if not settings.GOOGLE_CLIENT_ID:
            logger.warning("GOOGLE_CLIENT_ID is not set; Google sign-in is disabled")
        client = create_client(settings)
        store = AppointmentStore(get_appointments_collection(client, settings))
        identity = IdentityProvider(
            google_token_verifier(settings.GOOGLE_CLIENT_ID),
            admin_email=settings.ADMIN_EMAIL,
            ttl_minutes=settings.SESSION_TTL_MINUTES,
        )
        return cls(settings, store, identity, client=client)

    def today(self) -> str:
        return today_iso(self.settings.CLINIC_TIMEZONE)

    async def close(self) -> None:
        self.identity.close()
        await self.store.close()
        if self._client is not None:
            self._client.close()
        logger.info("Application context closed")


def get_context(conn: HTTPConnection) -> AppContext:
    """FastAPI dependency; works for both HTTP requests and WebSockets."""
    ctx: Optional[AppContext] = getattr(conn.app.state, "context", None)
    if ctx is None:
        raise RuntimeError("Application context is not initialised")
    return ctx
