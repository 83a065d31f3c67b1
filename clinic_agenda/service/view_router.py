# clinic_agenda/service/view_router.py
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from ..models import Session
from ..utils.share_links import APPOINTMENT_FRAGMENT_PREFIX


class ViewKind(str, Enum):
    PATIENT = "patient"
    SIGN_IN = "sign_in"
    ACCESS_DENIED = "access_denied"
    ADMIN = "admin"


class ResolvedView(BaseModel):
    kind: ViewKind
    appointment_id: Optional[str] = None
    email: Optional[str] = None


def parse_fragment(fragment: Optional[str]) -> Optional[str]:
    """Appointment id carried by an #appt-<id> fragment, or None for any other fragment."""
    if not fragment:
        return None
    if not fragment.startswith("#"):
        fragment = "#" + fragment
    if not fragment.startswith(APPOINTMENT_FRAGMENT_PREFIX):
        return None
    return fragment[len(APPOINTMENT_FRAGMENT_PREFIX):]


def resolve_view(fragment: Optional[str], session: Optional[Session], admin_email: str) -> ResolvedView:
    """
    Decide which experience a client should render.
    The public appointment fragment wins over any session; otherwise the
    admin view needs a session whose email equals the configured admin.
    """
    appointment_id = parse_fragment(fragment)
    if appointment_id is not None:
        return ResolvedView(kind=ViewKind.PATIENT, appointment_id=appointment_id)
    if session is None:
        return ResolvedView(kind=ViewKind.SIGN_IN)
    if session.email != admin_email:
        return ResolvedView(kind=ViewKind.ACCESS_DENIED, email=session.email)
    return ResolvedView(kind=ViewKind.ADMIN, email=session.email)
