# clinic_agenda/utils/share_links.py
import re
from io import BytesIO
from urllib.parse import quote

import qrcode
import qrcode.image.svg

from ..errors import InvalidInputError
from ..models import Appointment, ShareLinks

APPOINTMENT_FRAGMENT_PREFIX = "#appt-"


def share_url(base_url: str, appointment_id: str) -> str:
    """Patient entry point: the public page plus an #appt-<id> fragment."""
    return f"{base_url.split('#')[0]}{APPOINTMENT_FRAGMENT_PREFIX}{appointment_id}"


def whatsapp_url(appt: Appointment, base_url: str) -> str:
    if not appt.patient_phone:
        raise InvalidInputError("No hay teléfono registrado")
    # wa.me only accepts the number in international form, digits only
    phone = re.sub(r"\D", "", appt.patient_phone)
    text = (
        f"Hola {appt.patient_name}, te recordamos tu cita dental para el {appt.date} "
        f"a las {appt.time}. Puedes ver los detalles aquí: {share_url(base_url, appt.id)}"
    )
    return f"https://wa.me/{phone}?text={quote(text)}"


def reminder_mailto_url(appt: Appointment, base_url: str) -> str:
    if not appt.patient_email:
        raise InvalidInputError("No hay email registrado")
    subject = f"Recordatorio Cita Dental - {appt.date}"
    body = (
        f"Hola {appt.patient_name},\n\n"
        f"Tu cita está confirmada para el {appt.date} a las {appt.time}.\n"
        f"Tratamiento: {appt.treatment_type}.\n\n"
        f"Ver detalles y código QR aquí: {share_url(base_url, appt.id)}"
    )
    return f"mailto:{appt.patient_email}?subject={quote(subject)}&body={quote(body)}"


def self_mailto_url(appt: Appointment, clinic_name: str) -> str:
    """Blank-recipient mailto the patient uses to keep a copy of the appointment."""
    subject = f"Mi Cita Dental - {appt.date}"
    body = (
        "Hola,\n\nGuardo los datos de mi cita:\n"
        f"Fecha: {appt.date}\nHora: {appt.time}\nTratamiento: {appt.treatment_type}\n\n"
        f"{clinic_name}"
    )
    return f"mailto:?subject={quote(subject)}&body={quote(body)}"


def share_links(appt: Appointment, base_url: str) -> ShareLinks:
    """All outbound links for one appointment; channels without contact data are left out."""
    return ShareLinks(
        share_url=share_url(base_url, appt.id),
        whatsapp_url=whatsapp_url(appt, base_url) if appt.patient_phone else None,
        mailto_url=reminder_mailto_url(appt, base_url) if appt.patient_email else None,
    )


def qr_svg(data: str) -> bytes:
    qr = qrcode.QRCode(box_size=10, border=4, image_factory=qrcode.image.svg.SvgPathImage)
    qr.add_data(data)
    qr.make(fit=True)
    buffer = BytesIO()
    qr.make_image().save(buffer)
    return buffer.getvalue()
