# clinic_agenda/main.py
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .context import AppContext
from .core.logging import setup_logging
from .errors import (
    AgendaError,
    AppointmentNotFoundError,
    InvalidInputError,
    InvalidTransitionError,
    PermissionDeniedError,
    StoreUnavailableError,
)
from .routes import appointments, auth, live, preferences, public

ERROR_STATUS = {
    AppointmentNotFoundError: 404,
    PermissionDeniedError: 403,
    InvalidTransitionError: 409,
    InvalidInputError: 400,
    StoreUnavailableError: 503,
}


async def agenda_error_handler(request: Request, exc: AgendaError):
    status_code = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


def create_app(settings: Optional[Settings] = None,
               context_factory: Optional[Callable[[Settings], AppContext]] = None) -> FastAPI:
    settings = settings or get_settings()
    context_factory = context_factory or AppContext.from_settings
    log = setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.context = context_factory(settings)
        log.info("startup", db=settings.DB_NAME, collection=settings.COLLECTION_NAME)
        try:
            yield
        finally:
            await app.state.context.close()
            log.info("shutdown")

    app = FastAPI(title="Clinic Agenda", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AgendaError, agenda_error_handler)

    # Routers with prefixes + tags for Swagger
    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
    app.include_router(appointments.router, prefix="/api/appointments", tags=["Appointments"])
    app.include_router(public.router, prefix="/api/public/appointments", tags=["Patient"])
    app.include_router(preferences.router, prefix="/api/preferences", tags=["Preferences"])
    app.include_router(live.router, prefix="/api/live", tags=["Live"])
    return app


app = create_app()
