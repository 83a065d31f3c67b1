# clinic_agenda/security.py
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .context import AppContext, get_context
from .models import Session

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    ctx: AppContext = Depends(get_context),
) -> Optional[Session]:
    if credentials is None:
        return None
    return ctx.identity.get_session(credentials.credentials)


def require_session(session: Optional[Session] = Depends(get_current_session)) -> Session:
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Inicia sesión para continuar",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


def require_admin(
    session: Session = Depends(require_session),
    ctx: AppContext = Depends(get_context),
) -> Session:
    if not ctx.identity.is_admin(session):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"El correo {session.email} no tiene permisos de administrador.",
        )
    return session
