#!/usr/bin/env python
import logging

__version__ = "1.0.0"

from .connection import ConnectionManager
from .service import CalDAVService

# Silence notification of no default logging handler
log = logging.getLogger("caldav_service")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = ["__version__", "CalDAVService", "ConnectionManager"]
