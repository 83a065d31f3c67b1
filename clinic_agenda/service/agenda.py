# clinic_agenda/service/agenda.py
from collections import Counter
from enum import Enum
from typing import Iterable, List, Optional

from ..models import AgendaStats, Appointment, AppointmentStatus


class AgendaView(str, Enum):
    ALL = "all"
    AGENDA = "agenda"
    HISTORY = "history"


def is_active(appt: Appointment, today: str) -> bool:
    """Upcoming (today or later) and still scheduled."""
    return appt.status == AppointmentStatus.SCHEDULED and appt.date >= today


def is_history(appt: Appointment, today: str) -> bool:
    return not is_active(appt, today)


def matches(appt: Appointment, term: str) -> bool:
    term = term.lower()
    return (
        term in appt.patient_name.lower()
        or term in (appt.patient_email or "").lower()
        or term in (appt.patient_phone or "")
    )


def select(appointments: Iterable[Appointment], today: str,
           view: AgendaView = AgendaView.ALL, term: Optional[str] = None) -> List[Appointment]:
    """Filter an already sorted listing; order is kept."""
    selected = []
    for appt in appointments:
        if view == AgendaView.AGENDA and not is_active(appt, today):
            continue
        if view == AgendaView.HISTORY and not is_history(appt, today):
            continue
        if term and term.strip() and not matches(appt, term.strip()):
            continue
        selected.append(appt)
    return selected


def compute_stats(appointments: Iterable[Appointment], today: str) -> AgendaStats:
    appointments = list(appointments)
    by_status = {s.value: 0 for s in AppointmentStatus}
    by_status.update(Counter(a.status.value for a in appointments))
    return AgendaStats(
        total=len(appointments),
        today=sum(1 for a in appointments if a.date == today),
        by_status=by_status,
        by_treatment=dict(Counter(a.treatment_type for a in appointments)),
    )
