#!/usr/bin/env python
"""
CalDAV elements, RFC 4791 section 9.
"""
from datetime import date
from datetime import datetime
from typing import ClassVar
from typing import Optional
from typing import Union

from .base import BaseElement
from .base import NamedBaseElement
from prospero.lib.namespace import ns
from prospero.lib.vcal import to_utc


def _to_utc_date_string(ts: Union[date, datetime]) -> str:
    """UTC basic format, i.e. 20240902T080000Z.  Naive timestamps are taken as local time"""
    return to_utc(ts).strftime("%Y%m%dT%H%M%SZ")


## The calendar-query REPORT (9.5)
class CalendarQuery(BaseElement):
    tag: ClassVar[str] = ns("C", "calendar-query")


class CalendarData(BaseElement):
    """In a query: ask for the iCalendar data.  In the answer: the data"""

    tag: ClassVar[str] = ns("C", "calendar-data")


## Filtering (9.7)
class Filter(BaseElement):
    tag: ClassVar[str] = ns("C", "filter")


class CompFilter(NamedBaseElement):
    """``CompFilter("VEVENT")``, matches components by name"""

    tag: ClassVar[str] = ns("C", "comp-filter")


class TimeRange(BaseElement):
    """
    Matches components overlapping [start, end), with the overlap
    rules of section 9.9.  Either bound may be left out.
    """

    tag: ClassVar[str] = ns("C", "time-range")

    def __init__(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> None:
        super().__init__()
        if start is not None:
            self.attributes["start"] = _to_utc_date_string(start)
        if end is not None:
            self.attributes["end"] = _to_utc_date_string(end)


## Resource type of a calendar collection (4.2)
class Calendar(BaseElement):
    tag: ClassVar[str] = ns("C", "calendar")
