# clinic_agenda/routes/appointments.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..context import AppContext, get_context
from ..models import AppointmentEdit, AppointmentForm, CancelRequest, ChatMessageCreate, Sender
from ..security import require_admin
from ..service import lifecycle
from ..service.agenda import AgendaView, compute_stats, select
from ..utils.share_links import qr_svg, share_links, share_url

router = APIRouter(dependencies=[Depends(require_admin)])


async def _get_or_404(ctx: AppContext, appointment_id: str):
    appt = await ctx.store.get_by_id(appointment_id)
    if not appt:
        raise HTTPException(status_code=404, detail="Cita no encontrada")
    return appt


@router.get("/")
async def list_appointments(
    view: AgendaView = AgendaView.ALL,
    q: Optional[str] = Query(None, description="Search by name, email or phone"),
    ctx: AppContext = Depends(get_context),
):
    appointments = select(await ctx.store.list_all(), ctx.today(), view, q)
    return {"status": "ok", "appointments": appointments}


@router.get("/stats")
async def agenda_stats(ctx: AppContext = Depends(get_context)):
    stats = compute_stats(await ctx.store.list_all(), ctx.today())
    return {"status": "ok", "stats": stats}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_appointment(form: AppointmentForm, ctx: AppContext = Depends(get_context)):
    appt = await ctx.store.create(form)
    return {"status": "ok", "appointment": appt}


@router.post("/complete-elapsed")
async def complete_elapsed(ctx: AppContext = Depends(get_context)):
    """Mark every scheduled appointment whose date has passed as completed."""
    ids = await lifecycle.complete_elapsed(ctx.store, ctx.today())
    return {"status": "ok", "completed": ids}


@router.get("/{appointment_id}")
async def get_appointment(appointment_id: str, ctx: AppContext = Depends(get_context)):
    appt = await _get_or_404(ctx, appointment_id)
    return {"status": "ok", "appointment": appt}


@router.patch("/{appointment_id}")
async def edit_appointment(appointment_id: str, edit: AppointmentEdit, ctx: AppContext = Depends(get_context)):
    await ctx.store.update(appointment_id, edit.to_fields())
    appt = await _get_or_404(ctx, appointment_id)
    return {"status": "ok", "appointment": appt}


@router.delete("/{appointment_id}")
async def delete_appointment(appointment_id: str, ctx: AppContext = Depends(get_context)):
    await ctx.store.remove(appointment_id)
    return {"status": "ok", "deleted": appointment_id}


@router.post("/{appointment_id}/cancel")
async def cancel_appointment(appointment_id: str, req: CancelRequest, ctx: AppContext = Depends(get_context)):
    appt = await lifecycle.cancel(ctx.store, appointment_id, req.reason)
    return {"status": "ok", "appointment": appt}


@router.post("/{appointment_id}/resume")
async def resume_appointment(appointment_id: str, ctx: AppContext = Depends(get_context)):
    appt = await lifecycle.resume(ctx.store, appointment_id)
    return {"status": "ok", "appointment": appt}


@router.post("/{appointment_id}/complete")
async def complete_appointment(appointment_id: str, ctx: AppContext = Depends(get_context)):
    appt = await lifecycle.complete(ctx.store, appointment_id, ctx.today())
    return {"status": "ok", "appointment": appt}


@router.get("/{appointment_id}/messages")
async def list_messages(appointment_id: str, ctx: AppContext = Depends(get_context)):
    appt = await _get_or_404(ctx, appointment_id)
    return {"status": "ok", "messages": appt.messages}


@router.post("/{appointment_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_doctor_message(appointment_id: str, req: ChatMessageCreate, ctx: AppContext = Depends(get_context)):
    message = await lifecycle.send_message(ctx.store, appointment_id, Sender.DOCTOR, req.text)
    return {"status": "ok", "message": message}


@router.get("/{appointment_id}/share")
async def get_share_links(appointment_id: str, ctx: AppContext = Depends(get_context)):
    appt = await _get_or_404(ctx, appointment_id)
    return {"status": "ok", "links": share_links(appt, ctx.settings.PUBLIC_BASE_URL)}


@router.get("/{appointment_id}/qr")
async def get_qr_code(appointment_id: str, ctx: AppContext = Depends(get_context)):
    appt = await _get_or_404(ctx, appointment_id)
    svg = qr_svg(share_url(ctx.settings.PUBLIC_BASE_URL, appt.id))
    return Response(content=svg, media_type="image/svg+xml")
