# clinic_agenda/service/crud_appointments.py
import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import OperationFailure, PyMongoError

from ..errors import (
    AppointmentNotFoundError,
    InvalidInputError,
    InvalidTransitionError,
    PermissionDeniedError,
    StoreUnavailableError,
)
from ..models import Appointment, AppointmentForm, AppointmentStatus, ChatMessage, Sender
from ..utils.clock import now_ms

logger = logging.getLogger(__name__)

# MongoDB "Unauthorized"
UNAUTHORIZED_CODE = 13
ADMIN_PERMISSION_HINT = (
    "No tienes permiso para crear citas. "
    "Asegúrate de estar logueado como administrador."
)

OnAppointments = Callable[[List[Appointment]], Awaitable[None]]
OnAppointment = Callable[[Optional[Appointment]], Awaitable[None]]
OnError = Callable[[Exception], Awaitable[None]]

# every record must keep these or it can no longer be read back
REQUIRED_FIELDS = frozenset({"patient_name", "date", "time", "treatment_type", "status", "created_at"})


def sort_key(appt: Appointment):
    # Plain string comparison; date/time are fixed-width so this is chronological
    return (appt.date or "", appt.time or "")


def _object_id(appointment_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(appointment_id)
    except (InvalidId, TypeError):
        return None


def _new_message_id() -> str:
    return f"{time.time_ns()}-{uuid.uuid4().hex[:6]}"


def _merge(fields: Dict[str, Any]) -> Dict[str, Any]:
    """$set for values, $unset for None."""
    missing = sorted(k for k, v in fields.items() if v is None and k in REQUIRED_FIELDS)
    if missing:
        raise InvalidInputError(f"No se puede borrar un campo obligatorio: {', '.join(missing)}")
    changes: Dict[str, Any] = {}
    to_set = {k: v for k, v in fields.items() if v is not None}
    to_unset = {k: "" for k, v in fields.items() if v is None}
    if to_set:
        changes["$set"] = to_set
    if to_unset:
        changes["$unset"] = to_unset
    return changes


class Subscription:
    """Handle on a live query. Calling it releases the underlying change stream."""

    def __init__(self, task: asyncio.Task, on_release: Callable[["Subscription"], None]):
        self._task = task
        self._on_release = on_release
        task.add_done_callback(lambda _t: self._on_release(self))

    def __call__(self) -> None:
        self._task.cancel()

    @property
    def active(self) -> bool:
        return not self._task.done()

    async def wait_closed(self) -> None:
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class AppointmentStore:
    """Every read and write of appointment records goes through here."""

    def __init__(self, collection):
        self._collection = collection
        self._subscriptions: Set[Subscription] = set()

    # ---- reads ----

    async def list_all(self) -> List[Appointment]:
        try:
            docs = await self._collection.find({}).to_list(length=None)
        except PyMongoError as e:
            logger.error("Error fetching appointments: %s", e)
            raise StoreUnavailableError("No se pudieron cargar las citas") from e
        appointments = [Appointment.from_document(d) for d in docs]
        appointments.sort(key=sort_key)
        return appointments

    async def get_by_id(self, appointment_id: str) -> Optional[Appointment]:
        """
        One-shot fetch.
        Returns None when no such record exists; raises StoreUnavailableError
        when the store itself failed, so callers can tell the two apart.
        """
        oid = _object_id(appointment_id)
        if oid is None:
            return None
        try:
            doc = await self._collection.find_one({"_id": oid})
        except PyMongoError as e:
            logger.error("Error getting appointment %s: %s", appointment_id, e)
            raise StoreUnavailableError("No se pudo cargar la cita") from e
        if not doc:
            return None
        return Appointment.from_document(doc)

    # ---- live queries ----

    def subscribe_all(self, on_data: OnAppointments, on_error: Optional[OnError] = None) -> Subscription:
        """
        Push the full, sorted collection now and after every change.
        A failing stream reports once through on_error and ends; nothing retries it.
        """

        async def run():
            try:
                async with self._collection.watch() as stream:
                    await on_data(await self.list_all())
                    async for _change in stream:
                        await on_data(await self.list_all())
            except (PyMongoError, StoreUnavailableError) as e:
                logger.error("Error fetching appointments: %s", e)
                if on_error is not None:
                    await on_error(e)
            except Exception as e:
                logger.exception("Appointments subscription stopped")
                if on_error is not None:
                    await on_error(e)

        return self._track(run())

    def subscribe_one(self, appointment_id: str, on_change: OnAppointment,
                      on_error: Optional[OnError] = None) -> Subscription:
        """
        Push the current value of one appointment (None while it does not exist)
        now and after every change, deletions included.
        A failure reports once through on_error and ends the subscription.
        """
        oid = _object_id(appointment_id)

        async def run():
            if oid is None:
                # can never exist; report absent once and stay idle until released
                await on_change(None)
                await asyncio.Event().wait()
                return
            pipeline = [{"$match": {"documentKey._id": oid}}]
            try:
                async with self._collection.watch(pipeline) as stream:
                    await on_change(await self.get_by_id(appointment_id))
                    async for change in stream:
                        if change.get("operationType") == "delete":
                            await on_change(None)
                        else:
                            await on_change(await self.get_by_id(appointment_id))
            except (PyMongoError, StoreUnavailableError) as e:
                logger.error("Error watching appointment %s: %s", appointment_id, e)
                if on_error is not None:
                    await on_error(e)
            except Exception as e:
                logger.exception("Subscription to appointment %s stopped", appointment_id)
                if on_error is not None:
                    await on_error(e)

        return self._track(run())

    def _track(self, coro) -> Subscription:
        task = asyncio.get_running_loop().create_task(coro)
        sub = Subscription(task, self._subscriptions.discard)
        self._subscriptions.add(sub)
        return sub

    async def close(self) -> None:
        subs = list(self._subscriptions)
        for sub in subs:
            sub()
        for sub in subs:
            await sub.wait_closed()

    # ---- writes ----

    async def create(self, form: AppointmentForm) -> Appointment:
        doc: Dict[str, Any] = {
            "patient_name": form.patient_name,
            "patient_email": form.patient_email,
            "patient_phone": form.patient_phone,
            "date": form.date,
            "time": form.time,
            "treatment_type": form.treatment.label,
            "status": AppointmentStatus.SCHEDULED.value,
            "created_at": now_ms(),
            "messages": [],
        }
        try:
            res = await self._collection.insert_one(doc)
        except OperationFailure as e:
            logger.error("Error creating appointment: %s", e)
            if e.code == UNAUTHORIZED_CODE:
                raise PermissionDeniedError(ADMIN_PERMISSION_HINT) from e
            raise StoreUnavailableError("Error al crear la cita.") from e
        except PyMongoError as e:
            logger.error("Error creating appointment: %s", e)
            raise StoreUnavailableError("Error al crear la cita.") from e
        doc["_id"] = res.inserted_id
        logger.info("Created appointment %s for %s", res.inserted_id, form.date)
        return Appointment.from_document(doc)

    async def update(self, appointment_id: str, fields: Dict[str, Any]) -> None:
        """
        Merge fields into the record; a None value removes the field. Last writer wins.
        Removing a required field raises InvalidInputError before anything is written.
        """
        changes = _merge(fields)
        if not changes:
            return
        await self._write_one("updating appointment", appointment_id, changes)

    async def transition(self, appointment_id: str, from_status: AppointmentStatus, fields: Dict[str, Any]) -> None:
        """
        Apply fields only while the record is still in ``from_status``.
        The status check and the write are a single update_one, so a concurrent
        transition cannot be overwritten.
        """
        oid = _object_id(appointment_id)
        if oid is None:
            raise AppointmentNotFoundError(appointment_id)
        changes = _merge(fields)
        try:
            res = await self._collection.update_one({"_id": oid, "status": from_status.value}, changes)
        except PyMongoError as e:
            logger.error("Error changing status of %s: %s", appointment_id, e)
            raise self._translate(e, "Error al cambiar el estado de la cita.") from e
        if res.matched_count == 0:
            current = await self.get_by_id(appointment_id)
            if current is None:
                raise AppointmentNotFoundError(appointment_id)
            raise InvalidTransitionError(f"La cita ya está {current.status.value}")

    async def append_message(self, appointment_id: str, sender: Sender, text: str, timestamp: int) -> ChatMessage:
        message = ChatMessage(id=_new_message_id(), sender=sender, text=text, timestamp=timestamp)
        # $push is atomic on the server: doctor and patient may send at the same time
        await self._write_one(
            "sending message",
            appointment_id,
            {"$push": {"messages": message.model_dump(mode="json")}},
        )
        return message

    async def remove(self, appointment_id: str) -> None:
        oid = _object_id(appointment_id)
        if oid is None:
            raise AppointmentNotFoundError(appointment_id)
        try:
            res = await self._collection.delete_one({"_id": oid})
        except PyMongoError as e:
            logger.error("Error deleting appointment %s: %s", appointment_id, e)
            raise self._translate(e, "Error al eliminar la cita.") from e
        if res.deleted_count == 0:
            raise AppointmentNotFoundError(appointment_id)
        logger.info("Deleted appointment %s", appointment_id)

    async def _write_one(self, action: str, appointment_id: str, changes: Dict[str, Any]) -> None:
        oid = _object_id(appointment_id)
        if oid is None:
            raise AppointmentNotFoundError(appointment_id)
        try:
            res = await self._collection.update_one({"_id": oid}, changes)
        except PyMongoError as e:
            logger.error("Error %s %s: %s", action, appointment_id, e)
            raise self._translate(e, f"Error {action}") from e
        if res.matched_count == 0:
            raise AppointmentNotFoundError(appointment_id)

    @staticmethod
    def _translate(error: PyMongoError, message: str):
        if isinstance(error, OperationFailure) and error.code == UNAUTHORIZED_CODE:
            return PermissionDeniedError(ADMIN_PERMISSION_HINT)
        return StoreUnavailableError(message)
