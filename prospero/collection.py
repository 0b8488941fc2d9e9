#!/usr/bin/env python
"""
A calendar collection, refer to RFC 4791 for details:
https://tools.ietf.org/html/rfc4791#section-5.3.1
"""

import logging
from datetime import datetime
from typing import List, Optional
from urllib.parse import quote, unquote

from prospero.calendarobjectresource import EventResource
from prospero.davobject import DAVObject
from prospero.elements import dav
from prospero.lib import vcal
from prospero.lib.url import URL

log = logging.getLogger("prospero")


class Calendar(DAVObject):
    """
    Operations scoped to one calendar collection.  Cheap to create;
    all state lives on the server.
    """

    def _event_url(self, uid: str) -> URL:
        """The URL an event with this UID is stored at"""
        if self.url is None:
            raise ValueError("Unexpected value None for self.url")
        ## slashes in a UID must not create sub-paths
        return self.url.join(quote(uid.replace("/", "%2F")) + ".ics")

    async def save_event(self, event: vcal.Event, etag: Optional[str] = None) -> EventResource:
        """
        Store an event on the server, at a URL derived from its UID (a
        UID is generated if the event has none).

        Without an etag the event must be new - ``If-None-Match: *`` is
        sent, and a server already holding the UID answers with a
        ConflictError.  With an etag, the existing resource is replaced
        if it still carries that etag, else ConflictError.

        Returns:
          an EventResource for the stored event
        """
        client = self._require_client()
        data = vcal.encode(event)
        url = self._event_url(event.uid)

        if etag:
            headers = {"If-Match": etag}
        else:
            headers = {"If-None-Match": "*"}

        log.debug(f"saving event {event.uid} to {url}")
        r = await client.put(url, data, headers)

        return EventResource(
            client=client,
            url=url,
            data=data,
            parent=self,
            etag=r.etag,
        )

    async def delete_event(self, resource: EventResource) -> None:
        """
        Delete an event.  Raises NotFoundError if it's not there (any more).
        """
        await resource.delete()

    async def date_search(self, start: datetime, end: datetime) -> List[EventResource]:
        """Search events overlapping the time window [start, end).

        Returns:
         * [EventResource(), ...] sorted by start time
        """
        ## Late import to avoid circular imports
        from prospero.search import DateRangeSearcher

        return await DateRangeSearcher(start=start, end=end).search(self)

    async def events(self) -> List[EventResource]:
        """
        All objects in the calendar, as unloaded EventResources.  Uses
        a PROPFIND with depth 1, so the data is only fetched when one
        of the event fields is asked for.
        """
        results = await self._query_properties(
            [dav.GetEtag(), dav.ResourceType()], depth=1
        )
        own_path = unquote(self.url.path).rstrip("/")
        objects = []
        for result in sorted(results, key=lambda r: r.href):
            if result.href.rstrip("/") == own_path:
                continue
            if result.status == 404:
                continue
            resource_types = result.properties.get(dav.ResourceType.tag) or []
            if dav.Collection.tag in resource_types:
                continue
            objects.append(
                EventResource(
                    client=self.client,
                    url=self.url.join(quote(result.href)),
                    parent=self,
                    etag=result.properties.get(dav.GetEtag.tag),
                )
            )
        return objects

    async def event_by_url(self, href: str, data: Optional[str] = None) -> EventResource:
        """
        The event at href.  Loaded from the server unless data is given.
        """
        resource = EventResource(client=self.client, url=self.url.join(href), data=data, parent=self)
        return await resource.load(only_if_unloaded=True)

    async def event_by_uid(self, uid: str) -> EventResource:
        """
        The event saved with this UID.  Only finds events stored at the
        URL save_event derives from the UID.  Raises NotFoundError.
        """
        return await self.event_by_url(self._event_url(uid))

