#!/usr/bin/env python
"""
Calendar object resources, ref RFC 4791, section 4.1.

An EventResource is what the server hands back: a URL, possibly an
etag, possibly the calendar data.  The event fields are read through
coroutines, each of which fetches the data first if it isn't there yet.
"""

import datetime
import logging
import sys
from typing import TYPE_CHECKING, Any, Dict, Optional, Union
from urllib.parse import ParseResult, SplitResult

from prospero.davobject import DAVObject
from prospero.elements import dav
from prospero.lib import vcal
from prospero.lib.python_utilities import to_normal_str
from prospero.lib.url import URL

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

if TYPE_CHECKING:
    from prospero.davclient import DAVClient

log = logging.getLogger("prospero")


class EventResource(DAVObject):
    """
    A VEVENT stored on the server.

    The decoded data is cached on the object after the first access;
    load() fetches it again.
    """

    _data: Optional[str] = None
    _parsed: Optional[vcal.VEventData] = None

    def __init__(
        self,
        client: Optional["DAVClient"] = None,
        url: Union[str, ParseResult, SplitResult, URL, None] = None,
        data: Union[str, bytes, None] = None,
        parent: Optional[DAVObject] = None,
        etag: Optional[str] = None,
        props: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        EventResource has two additional parameters for its constructor:
         * data = "...", iCalendar data for the event, if known
         * etag = the etag of the resource, if known
        """
        super().__init__(client=client, url=url, parent=parent, props=props)
        if etag:
            self.props[dav.GetEtag.tag] = etag
        self.data = data

    @property
    def data(self) -> Optional[str]:
        return self._data

    @data.setter
    def data(self, value: Union[str, bytes, None]) -> None:
        """Set the iCalendar data and invalidate the decoded instance."""
        self._data = to_normal_str(value)
        self._parsed = None

    @property
    def etag(self) -> Optional[str]:
        return self.props.get(dav.GetEtag.tag)

    def is_loaded(self) -> bool:
        return bool(self._data)

    async def load(self, only_if_unloaded: bool = False) -> Self:
        """
        (Re)load the object from the caldav server.
        """
        if only_if_unloaded and self.is_loaded():
            return self

        client = self._require_client()
        r = await client.get(self.url)
        self.data = r.raw
        if r.etag:
            self.props[dav.GetEtag.tag] = r.etag
        return self

    async def vevent(self) -> vcal.VEventData:
        """
        The decoded VEVENT, fetched from the server if needed.  Raises
        MalformedCalendarData if the data can't be decoded.
        """
        if self._parsed is None:
            await self.load(only_if_unloaded=True)
            self._parsed = vcal.decode(self._data, url=str(self.url))
        return self._parsed

    async def summary(self) -> str:
        return (await self.vevent()).summary()

    async def description(self) -> str:
        return (await self.vevent()).description()

    async def uid(self) -> str:
        return (await self.vevent()).uid()

    async def start_time(self) -> datetime.datetime:
        return (await self.vevent()).start_time()

    async def end_time(self) -> datetime.datetime:
        return (await self.vevent()).end_time()
