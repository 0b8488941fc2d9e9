#!/usr/bin/env python
import logging

__version__ = "0.1.0"

from .calendarobjectresource import EventResource
from .collection import Calendar
from .davclient import DAVClient
from .davclient import get_davclient
from .lib.auth import BasicAuth
from .lib.auth import Unauthenticated
from .lib.vcal import Event

# Silence notification of no default logging handler
log = logging.getLogger("prospero")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = [
    "__version__",
    "BasicAuth",
    "Calendar",
    "DAVClient",
    "Event",
    "EventResource",
    "Unauthenticated",
    "get_davclient",
]
