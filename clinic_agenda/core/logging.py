import logging
import sys

import structlog
from pythonjsonlogger import jsonlogger


def setup_logging(level: str = "INFO", json_output: bool = False):
    """Configure the root logger and structlog, return the app logger."""

    if json_output:
        formatter = jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s"
        )
        renderer = structlog.processors.JSONRenderer()
    else:
        formatter = logging.Formatter("%(levelname)-8s %(name)s: %(message)s")
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    # setup_logging may run once per app instance
    for handler in list(root.handlers):
        if getattr(handler, "_clinic_agenda", False):
            root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler._clinic_agenda = True
    root.addHandler(handler)
    root.setLevel(level.upper())

    return structlog.get_logger("clinic_agenda")
