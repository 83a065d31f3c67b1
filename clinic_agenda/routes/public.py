# clinic_agenda/routes/public.py
# Patient-facing endpoints: anyone holding the appointment link may use them.
from fastapi import APIRouter, Depends, HTTPException, status

from ..context import AppContext, get_context
from ..models import CancelRequest, ChatMessageCreate, Sender
from ..service import lifecycle
from ..utils.share_links import self_mailto_url

router = APIRouter()


@router.get("/{appointment_id}")
async def view_appointment(appointment_id: str, ctx: AppContext = Depends(get_context)):
    appt = await ctx.store.get_by_id(appointment_id)
    if not appt:
        raise HTTPException(status_code=404, detail="Cita no encontrada")
    return {"status": "ok", "appointment": appt}


@router.post("/{appointment_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_patient_message(appointment_id: str, req: ChatMessageCreate, ctx: AppContext = Depends(get_context)):
    message = await lifecycle.send_message(ctx.store, appointment_id, Sender.PATIENT, req.text)
    return {"status": "ok", "message": message}


@router.post("/{appointment_id}/cancel")
async def cancel_my_appointment(appointment_id: str, req: CancelRequest, ctx: AppContext = Depends(get_context)):
    appt = await lifecycle.cancel(ctx.store, appointment_id, req.reason)
    return {"status": "ok", "appointment": appt}


@router.post("/{appointment_id}/resume")
async def resume_my_appointment(appointment_id: str, ctx: AppContext = Depends(get_context)):
    appt = await lifecycle.resume(ctx.store, appointment_id)
    return {"status": "ok", "appointment": appt}


@router.get("/{appointment_id}/self-email")
async def self_email_link(appointment_id: str, ctx: AppContext = Depends(get_context)):
    appt = await ctx.store.get_by_id(appointment_id)
    if not appt:
        raise HTTPException(status_code=404, detail="Cita no encontrada")
    return {"status": "ok", "mailto_url": self_mailto_url(appt, ctx.settings.CLINIC_NAME)}
