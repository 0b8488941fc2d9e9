"""
Result types for parsed WebDAV/CalDAV responses.

These dataclasses hold what was found in a multistatus document,
independent of how the request was sent.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class PropfindResult:
    """
    Parsed result of a PROPFIND request for a single resource.

    Attributes:
        href: URL path of the resource
        properties: Dict of property tag -> value
        status: HTTP status for this resource (default 200)
    """

    href: str
    properties: dict[str, Any] = field(default_factory=dict)
    status: int = 200


@dataclass
class CalendarQueryResult:
    """
    Parsed result of a calendar-query REPORT for a single object.

    Attributes:
        href: URL path of the calendar object
        etag: ETag of the object (for conditional updates)
        calendar_data: iCalendar data as string, if the server inlined it
        status: HTTP status for this resource (default 200)
    """

    href: str
    etag: Optional[str] = None
    calendar_data: Optional[str] = None
    status: int = 200
