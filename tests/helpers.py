# tests/helpers.py
import asyncio
from datetime import date, timedelta

from clinic_agenda.models import AppointmentForm
from clinic_agenda.utils.clock import today_iso


def days_from_today(days: int) -> str:
    return (date.fromisoformat(today_iso("UTC")) + timedelta(days=days)).isoformat()


async def next_push(queue: asyncio.Queue, timeout: float = 2.0):
    return await asyncio.wait_for(queue.get(), timeout)


def make_form(name="Juan Pérez", date="2024-05-01", time="10:00",
              treatment=None, email=None, phone=None) -> AppointmentForm:
    return AppointmentForm(
        patient_name=name,
        patient_email=email,
        patient_phone=phone,
        date=date,
        time=time,
        treatment=treatment or {"kind": "preset", "name": "Limpieza General"},
    )


NEW_APPOINTMENT = {
    "patient_name": "Juan Pérez",
    "patient_email": "juan@example.com",
    "patient_phone": "600111222",
    "date": "2024-05-01",
    "time": "10:00",
    "treatment": {"kind": "preset", "name": "Limpieza General"},
}
