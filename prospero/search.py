"""
Time range searches on a calendar collection.

The server does the filtering (a calendar-query REPORT, RFC 4791
section 7.8).  The results are checked once more on the client side,
as some servers are sloppy with the time-range semantics, and sorted
by start time.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional, Tuple
from urllib.parse import quote, unquote

from prospero.calendarobjectresource import EventResource
from prospero.lib import error
from prospero.lib.vcal import to_utc
from prospero.protocol import CalendarQueryResult, build_calendar_query_body, parse_calendar_query_response

if TYPE_CHECKING:
    from prospero.collection import Calendar

log = logging.getLogger("prospero")


def overlaps(
    start: datetime, end: datetime, window_start: datetime, window_end: datetime
) -> bool:
    """
    Whether an event [start, end) overlaps the window [window_start,
    window_end), ref the time-range table in RFC 4791 section 9.9.  A
    zero-length event overlaps if it starts inside the window.
    """
    if end <= start:
        return window_start <= start < window_end
    return start < window_end and end > window_start


@dataclass
class DateRangeSearcher:
    """Finds the events overlapping [start, end).

    ``DateRangeSearcher(start=..., end=...).search(calendar)``

    An inverted window (end before start) is sent to the server as is;
    the server will typically find nothing.
    """

    start: datetime
    end: datetime
    comp_filter: str = "VEVENT"

    def build_search_xml_query(self) -> bytes:
        return build_calendar_query_body(
            start=self.start, end=self.end, comp_filter=self.comp_filter
        )

    async def search(self, calendar: "Calendar") -> List[EventResource]:
        """
        Sends the calendar-query, and returns the matching events,
        sorted by start time (ties broken by URL).

        Entries that can't be decoded, or that lack a start time, are
        left out with a warning rather than failing the whole search.
        Entries the server listed without calendar data are fetched;
        those gone by then are left out too.
        """
        client = calendar._require_client()
        response = await client.report(
            calendar.url, self.build_search_xml_query(), depth=1
        )
        results = parse_calendar_query_response(
            response.content, huge_tree=client.huge_tree
        )

        objects = self._build_resultlist(calendar, results)

        ## some servers only hand out the hrefs
        missing = [obj for obj in objects if not obj.is_loaded()]
        if missing:
            log.debug(f"fetching calendar data for {len(missing)} search results")
            loaded = await asyncio.gather(
                *(obj.load() for obj in missing), return_exceptions=True
            )
            for obj, result in zip(missing, loaded):
                if isinstance(result, error.NotFoundError):
                    ## deleted between the REPORT and the GET
                    log.warning(f"skipping search result {obj.url}: {result}")
                    objects.remove(obj)
                elif isinstance(result, BaseException):
                    raise result

        matches = []
        for obj in objects:
            try:
                key = await self._check(obj)
            except (error.MalformedCalendarData, error.MissingField) as err:
                log.warning(f"skipping search result {obj.url}: {err}")
                continue
            if key is not None:
                matches.append((key, obj))

        return self.sort(matches)

    def _build_resultlist(
        self, calendar: "Calendar", results: List[CalendarQueryResult]
    ) -> List[EventResource]:
        own_path = unquote(calendar.url.path).rstrip("/")
        objects = []
        for result in results:
            if result.href.rstrip("/") == own_path:
                continue
            if result.status == 404:
                log.debug(f"search result {result.href} reported as 404, skipping")
                continue
            objects.append(
                EventResource(
                    client=calendar.client,
                    url=calendar.url.join(quote(result.href)),
                    data=result.calendar_data,
                    parent=calendar,
                    etag=result.etag,
                )
            )
        return objects

    async def _check(self, obj: EventResource) -> Optional[Tuple[datetime, str]]:
        """
        Returns the sort key of obj, or None if it falls outside the
        window.  Recurring events are left to the server.
        """
        vevent = await obj.vevent()
        start = vevent.start_time()
        if not vevent.is_recurring():
            end = vevent.end_time()
            if not overlaps(start, end, to_utc(self.start), to_utc(self.end)):
                log.debug(
                    f"server returned {obj.url} ({start} - {end}) outside of the search window, dropping it"
                )
                return None
        return (start, str(obj.url))

    @staticmethod
    def sort(matches: List[Tuple[Tuple[datetime, str], EventResource]]) -> List[EventResource]:
        return [obj for key, obj in sorted(matches, key=lambda m: m[0])]
