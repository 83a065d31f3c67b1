# clinic_agenda/service/lifecycle.py
import logging
from typing import List

from ..errors import AppointmentNotFoundError, InvalidInputError, InvalidTransitionError
from ..models import Appointment, AppointmentStatus, ChatMessage, Sender
from ..utils.clock import now_ms
from .crud_appointments import AppointmentStore

logger = logging.getLogger(__name__)


async def _load(store: AppointmentStore, appointment_id: str) -> Appointment:
    appt = await store.get_by_id(appointment_id)
    if appt is None:
        raise AppointmentNotFoundError(appointment_id)
    return appt


async def cancel(store: AppointmentStore, appointment_id: str, reason: str) -> Appointment:
    """SCHEDULED -> CANCELLED, keeping the reason given by whoever cancelled."""
    reason = (reason or "").strip()
    if not reason:
        raise InvalidInputError("Indica el motivo de la cancelación.")

    appt = await _load(store, appointment_id)
    if appt.status != AppointmentStatus.SCHEDULED:
        raise InvalidTransitionError(f"No se puede cancelar una cita {appt.status.value}")

    await store.transition(appointment_id, AppointmentStatus.SCHEDULED, {
        "status": AppointmentStatus.CANCELLED.value,
        "cancellation_reason": reason,
    })
    logger.info("Appointment %s cancelled", appointment_id)
    return appt.model_copy(update={"status": AppointmentStatus.CANCELLED, "cancellation_reason": reason})


async def resume(store: AppointmentStore, appointment_id: str) -> Appointment:
    """
    CANCELLED -> SCHEDULED, dropping the cancellation reason.
    Resuming an appointment that is already SCHEDULED succeeds without a write.
    """
    appt = await _load(store, appointment_id)
    if appt.status == AppointmentStatus.SCHEDULED:
        return appt
    if appt.status != AppointmentStatus.CANCELLED:
        raise InvalidTransitionError(f"No se puede reanudar una cita {appt.status.value}")

    await store.transition(appointment_id, AppointmentStatus.CANCELLED, {
        "status": AppointmentStatus.SCHEDULED.value,
        "cancellation_reason": None,
    })
    logger.info("Appointment %s resumed", appointment_id)
    return appt.model_copy(update={"status": AppointmentStatus.SCHEDULED, "cancellation_reason": None})


async def complete(store: AppointmentStore, appointment_id: str, today: str) -> Appointment:
    """SCHEDULED -> COMPLETED, only once the appointment date has arrived."""
    appt = await _load(store, appointment_id)
    if appt.status != AppointmentStatus.SCHEDULED:
        raise InvalidTransitionError(f"No se puede completar una cita {appt.status.value}")
    # records without a date are never due
    if not appt.date or appt.date > today:
        raise InvalidTransitionError("La cita todavía no ha ocurrido")

    await store.transition(appointment_id, AppointmentStatus.SCHEDULED, {"status": AppointmentStatus.COMPLETED.value})
    return appt.model_copy(update={"status": AppointmentStatus.COMPLETED})


async def complete_elapsed(store: AppointmentStore, today: str) -> List[str]:
    """Mark every SCHEDULED appointment dated before today as COMPLETED. Returns their ids."""
    completed = []
    for appt in await store.list_all():
        if appt.status == AppointmentStatus.SCHEDULED and appt.date and appt.date < today:
            try:
                await store.transition(appt.id, AppointmentStatus.SCHEDULED,
                                       {"status": AppointmentStatus.COMPLETED.value})
            except (AppointmentNotFoundError, InvalidTransitionError):
                # deleted or cancelled between listing and update
                continue
            completed.append(appt.id)
    if completed:
        logger.info("Marked %d elapsed appointments as completed", len(completed))
    return completed


async def send_message(store: AppointmentStore, appointment_id: str, sender: Sender, text: str) -> ChatMessage:
    text = (text or "").strip()
    if not text:
        raise InvalidInputError("El mensaje está vacío.")
    return await store.append_message(appointment_id, sender, text, now_ms())
