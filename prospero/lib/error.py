#!/usr/bin/env python
import logging
import os
from typing import Dict
from typing import Optional
from typing import Type

from lxml import etree

from prospero import __version__

## Environmental variables prepended with "PROSPERO_" are used for
## debug purposes and for connection parameters (see prospero.config)
debug_dump_communication = bool(os.environ.get("PROSPERO_COMMDUMP", False))

## one of DEBUG_PDB, DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("PROSPERO_DEBUGMODE")
if not debugmode:
    if "dev" in __version__:
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("prospero")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)
else:
    log.setLevel(logging.WARNING)


def errmsg(r) -> str:
    """Utility for formatting an error response to an error string"""
    return "%s %s\n\n%s" % (r.status, r.reason, r.raw)


def _as_text(thing) -> str:
    """XML elements (lxml or our own) are pretty-printed"""
    if isinstance(thing, str):
        return thing
    if hasattr(thing, "xmlelement"):
        thing = thing.xmlelement()
    try:
        return etree.tostring(thing, pretty_print=True).decode("utf-8")
    except TypeError:
        return str(thing)


def weirdness(*reasons) -> None:
    reason = " : ".join([_as_text(x) for x in reasons])
    log.warning(f"Deviation from expectations found: {reason}")
    if debugmode == "DEBUG_PDB":
        log.error(f"Dropping into debugger due to {reason}")
        import pdb

        pdb.set_trace()


def assert_(condition: object) -> None:
    try:
        assert condition
    except AssertionError:
        if debugmode == "PRODUCTION":
            log.error(
                "Deviation from expectations found.  %s" % ERR_FRAGMENT, exc_info=True
            )
        elif debugmode == "DEBUG_PDB":
            log.error("Deviation from expectations found.  Dropping into debugger")
            import pdb

            pdb.set_trace()
        else:
            raise


ERR_FRAGMENT: str = "This is probably a compatibility problem with your calendar server.  Please include this error, the traceback (if any) and the name of the server when reporting it"


class DAVError(Exception):
    url: Optional[str] = None
    reason: str = "no reason"

    def __init__(self, url: Optional[str] = None, reason: Optional[str] = None) -> None:
        if url:
            self.url = url
        if reason:
            self.reason = reason

    def __str__(self) -> str:
        return "%s at '%s', reason %s" % (
            self.__class__.__name__,
            self.url,
            self.reason,
        )


class TransportError(DAVError):
    """
    The request never got a proper HTTP answer: connection refused,
    DNS failure, TLS problems, timeouts.  Nothing is retried by the
    library; the caller may retry.
    """

    pass


class ProtocolError(DAVError):
    """
    The server answered with a non-2xx status.  The status property
    holds the HTTP status code (if known).
    """

    status: Optional[int] = None

    def __init__(
        self,
        url: Optional[str] = None,
        reason: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(url=url, reason=reason)
        if status is not None:
            self.status = status


class MalformedResponse(DAVError):
    """
    The server said yes (2xx), but the body could not be decoded as
    the expected XML.
    """

    pass


class AuthorizationError(ProtocolError):
    """
    The client encountered an HTTP 401 or 403 error and is passing it on
    to the user. The url property will contain the url in question,
    the reason property will contain the excuse the server sent.
    """

    pass


class SaveFailed(DAVError):
    """Base class for everything that may go wrong when saving an event"""

    pass


class PutError(ProtocolError, SaveFailed):
    pass


class ConflictError(ProtocolError, SaveFailed):
    """
    A write collided with the current state on the server (HTTP 409 or
    412).  Typically the UID is already in use, or the resource was
    modified since the etag was fetched.
    """

    pass


class PropfindError(ProtocolError):
    pass


class ReportError(ProtocolError):
    pass


class GetError(ProtocolError):
    pass


class DeleteError(ProtocolError):
    pass


class NotFoundError(ProtocolError):
    status = 404


class ResponseError(ProtocolError):
    pass


class MalformedCalendarData(DAVError):
    pass


class MissingField(DAVError):
    """A property was requested from a VEVENT that does not carry it"""

    field: Optional[str] = None

    def __init__(self, field: str, url: Optional[str] = None) -> None:
        super().__init__(url=url, reason=f"no {field} property in event")
        self.field = field


exception_by_method: Dict[str, Type[ProtocolError]] = {
    "propfind": PropfindError,
    "report": ReportError,
    "put": PutError,
    "get": GetError,
    "delete": DeleteError,
}
