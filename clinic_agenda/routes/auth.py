# clinic_agenda/routes/auth.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..context import AppContext, get_context
from ..models import Session, SignInRequest
from ..security import get_current_session, require_session
from ..service.identity import SignInError
from ..service.view_router import resolve_view

router = APIRouter()


@router.post("/sign-in")
async def sign_in(req: SignInRequest, ctx: AppContext = Depends(get_context)):
    try:
        session = await ctx.identity.sign_in(req.credential)
    except SignInError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return {
        "status": "ok",
        "session": session,
        "is_admin": ctx.identity.is_admin(session),
    }


@router.post("/sign-out")
async def sign_out(session: Session = Depends(require_session), ctx: AppContext = Depends(get_context)):
    ctx.identity.sign_out(session.session_id)
    return {"status": "ok"}


@router.get("/session")
async def current_session(session: Optional[Session] = Depends(get_current_session),
                          ctx: AppContext = Depends(get_context)):
    return {"status": "ok", "session": session, "is_admin": ctx.identity.is_admin(session)}


@router.get("/view")
async def view_for_fragment(
    fragment: str = Query("", description="URL fragment, e.g. #appt-<id>"),
    session: Optional[Session] = Depends(get_current_session),
    ctx: AppContext = Depends(get_context),
):
    """Which experience the client should render for this fragment and session."""
    return {"status": "ok", "view": resolve_view(fragment, session, ctx.settings.ADMIN_EMAIL)}
