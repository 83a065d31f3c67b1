# clinic_agenda/service/identity.py
import asyncio
import logging
import secrets
from typing import Callable, Dict, List, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from ..models import Session
from ..utils.clock import now_ms

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[Session]], None]
# credential -> verified token claims
TokenVerifier = Callable[[str], dict]


class SignInError(Exception):
    pass


def google_token_verifier(client_id: Optional[str]) -> TokenVerifier:
    """
    Verifier for Google Sign-In ID tokens issued to our OAuth client.
    Without a client id every credential is rejected: google-auth would
    otherwise skip the audience check.
    """

    def verify(credential: str) -> dict:
        if not client_id:
            raise ValueError("GOOGLE_CLIENT_ID is not configured")
        return id_token.verify_oauth2_token(credential, google_requests.Request(), client_id)

    return verify


class IdentityProvider:
    """
    Sessions opened from a federated sign-in.
    Sessions live in memory and last ``ttl_minutes``; listeners observe one
    session id and hear about sign-in, sign-out and expiry.
    """

    def __init__(self, verifier: TokenVerifier, admin_email: str, ttl_minutes: int = 720):
        self._verifier = verifier
        self._admin_email = admin_email
        self._ttl_ms = ttl_minutes * 60 * 1000
        self._sessions: Dict[str, Session] = {}
        self._listeners: Dict[str, List[SessionListener]] = {}

    async def sign_in(self, credential: str) -> Session:
        loop = asyncio.get_running_loop()
        try:
            # google-auth fetches certificates with blocking I/O
            claims = await loop.run_in_executor(None, self._verifier, credential)
        except (ValueError, GoogleAuthError) as e:
            logger.warning("Rejected sign-in credential: %s", e)
            raise SignInError("No se pudo iniciar sesión con Google.") from e

        email = claims.get("email")
        if not email or claims.get("email_verified") is False:
            raise SignInError("La cuenta de Google no tiene un correo verificado.")

        created = now_ms()
        session = Session(
            session_id=secrets.token_urlsafe(32),
            email=email,
            name=claims.get("name"),
            created_at=created,
            expires_at=created + self._ttl_ms,
        )
        self._sessions[session.session_id] = session
        logger.info("Signed in %s", email)
        self._notify(session.session_id, session)
        return session

    def sign_out(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info("Signed out %s", session.email)
            self._notify(session_id, None)

    def get_session(self, session_id: Optional[str]) -> Optional[Session]:
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.expires_at <= now_ms():
            del self._sessions[session_id]
            self._notify(session_id, None)
            return None
        return session

    def is_admin(self, session: Optional[Session]) -> bool:
        # exact match, no roles
        return session is not None and session.email == self._admin_email

    def on_session_change(self, session_id: str, callback: SessionListener) -> Callable[[], None]:
        """Call back now with the current session, then on every change. Returns the detach handle."""
        self._listeners.setdefault(session_id, []).append(callback)
        callback(self.get_session(session_id))

        def unsubscribe():
            listeners = self._listeners.get(session_id, [])
            if callback in listeners:
                listeners.remove(callback)
            if not listeners:
                self._listeners.pop(session_id, None)

        return unsubscribe

    def _notify(self, session_id: str, session: Optional[Session]) -> None:
        for callback in list(self._listeners.get(session_id, [])):
            callback(session)

    def close(self) -> None:
        self._listeners.clear()
        self._sessions.clear()
