# clinic_agenda/errors.py


class AgendaError(Exception):
    """Base class for every error the agenda surfaces to its callers."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AppointmentNotFoundError(AgendaError):
    def __init__(self, appointment_id: str):
        super().__init__("Cita no encontrada")
        self.appointment_id = appointment_id


class PermissionDeniedError(AgendaError):
    """The store refused the operation for the current credentials."""


class StoreUnavailableError(AgendaError):
    """The store could not be reached or failed while serving the request."""


class InvalidTransitionError(AgendaError):
    pass


class InvalidInputError(AgendaError):
    pass
