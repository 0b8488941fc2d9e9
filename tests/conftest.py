"""
Shared fixtures.

Rule: None of the tests using these fixtures should initiate any
internet communication.  FakeCalDAVServer stands in for the niquests
session, and keeps a calendar collection in memory.
"""

from datetime import datetime
from datetime import timezone
from typing import Dict
from typing import Optional
from typing import Tuple
from unittest.mock import AsyncMock
from unittest.mock import MagicMock
from urllib.parse import unquote
from urllib.parse import urlparse

import icalendar
import pytest
from lxml import etree

from prospero import DAVClient

DAV = "DAV:"
CALDAV = "urn:ietf:params:xml:ns:caldav"
NSMAP = {"D": DAV, "C": CALDAV}

CALENDAR_URL = "https://caldav.example.com/calendars/user/schedule/"

utc = timezone.utc


def create_mock_response(
    content: bytes = b"",
    status_code: int = 200,
    reason: str = "OK",
    headers: dict = None,
) -> MagicMock:
    """Create a mock HTTP response."""
    resp = MagicMock()
    resp.content = content
    resp.status_code = status_code
    resp.reason = reason
    resp.headers = headers or {}
    resp.text = content.decode("utf-8") if content else ""
    return resp


def _dav(tag: str) -> str:
    return "{%s}%s" % (DAV, tag)


def _caldav(tag: str) -> str:
    return "{%s}%s" % (CALDAV, tag)


def _utc(ts) -> datetime:
    if not isinstance(ts, datetime):
        return datetime(ts.year, ts.month, ts.day, tzinfo=utc)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=utc)
    return ts.astimezone(utc)


class FakeCalDAVServer:
    """
    A single calendar collection held in memory.  Honors If-Match and
    If-None-Match on PUT and DELETE, and the time-range of a
    calendar-query.

    Knobs:
     * inline_data = False - REPORT answers carry hrefs and etags only
     * sloppy = True - REPORT ignores the time range
     * vanished - names listed by REPORT that are gone when fetched
    """

    def __init__(self, base_path: str = urlparse(CALENDAR_URL).path) -> None:
        self.base_path = base_path
        self.objects: Dict[str, Tuple[str, str]] = {}
        self.requests = []
        self.inline_data = True
        self.sloppy = False
        self.vanished = []
        self._etag_counter = 0

    def _new_etag(self) -> str:
        self._etag_counter += 1
        return '"etag-%i"' % self._etag_counter

    def add_raw(self, name: str, data: str) -> str:
        """Store data as is, bypassing the client"""
        etag = self._new_etag()
        self.objects[self.base_path + name] = (etag, data)
        return etag

    def methods(self):
        return [r[0] for r in self.requests]

    async def __call__(self, method, url, data=None, headers=None, **kwargs):
        headers = dict(headers or {})
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        self.requests.append((method, url, headers, data))
        path = unquote(urlparse(url).path)
        return getattr(self, "_" + method.lower())(path, headers, data)

    def _precondition_failed(self, path: str, headers: dict) -> bool:
        if headers.get("If-None-Match") == "*" and path in self.objects:
            return True
        if "If-Match" in headers:
            return path not in self.objects or self.objects[path][0] != headers["If-Match"]
        return False

    def _put(self, path, headers, data):
        if self._precondition_failed(path, headers):
            return create_mock_response(status_code=412, reason="Precondition Failed")
        created = path not in self.objects
        etag = self._new_etag()
        self.objects[path] = (etag, data)
        return create_mock_response(
            status_code=201 if created else 204,
            reason="Created" if created else "No Content",
            headers={"ETag": etag},
        )

    def _get(self, path, headers, data):
        if path not in self.objects:
            return create_mock_response(status_code=404, reason="Not Found")
        etag, ical = self.objects[path]
        return create_mock_response(
            content=ical.encode("utf-8"),
            headers={"Content-Type": "text/calendar; charset=utf-8", "ETag": etag},
        )

    def _delete(self, path, headers, data):
        if path not in self.objects:
            return create_mock_response(status_code=404, reason="Not Found")
        if self._precondition_failed(path, headers):
            return create_mock_response(status_code=412, reason="Precondition Failed")
        del self.objects[path]
        return create_mock_response(status_code=204, reason="No Content")

    def _multistatus(self, responses) -> MagicMock:
        root = etree.Element(_dav("multistatus"), nsmap=NSMAP)
        for href, props in responses:
            response = etree.SubElement(root, _dav("response"))
            etree.SubElement(response, _dav("href")).text = href
            propstat = etree.SubElement(response, _dav("propstat"))
            prop = etree.SubElement(propstat, _dav("prop"))
            for prop_element in props:
                prop.append(prop_element)
            etree.SubElement(propstat, _dav("status")).text = "HTTP/1.1 200 OK"
        return create_mock_response(
            content=etree.tostring(root, xml_declaration=True, encoding="utf-8"),
            status_code=207,
            reason="Multi-Status",
            headers={"Content-Type": "application/xml; charset=utf-8"},
        )

    @staticmethod
    def _element(tag: str, text: Optional[str] = None, children=()):
        element = etree.Element(tag, nsmap=NSMAP)
        element.text = text
        for child in children:
            element.append(etree.Element(child, nsmap=NSMAP))
        return element

    def _propfind(self, path, headers, data):
        if path.rstrip("/") != self.base_path.rstrip("/"):
            if path not in self.objects:
                return create_mock_response(status_code=404, reason="Not Found")
        responses = [
            (
                self.base_path,
                [
                    self._element(_dav("displayname"), "Schedule"),
                    self._element(
                        _dav("resourcetype"),
                        children=[_dav("collection"), _caldav("calendar")],
                    ),
                ],
            )
        ]
        if headers.get("Depth") == "1":
            for obj_path, (etag, ical) in self.objects.items():
                responses.append(
                    (
                        obj_path,
                        [
                            self._element(_dav("getetag"), etag),
                            self._element(_dav("resourcetype")),
                        ],
                    )
                )
        return self._multistatus(responses)

    def _matches(self, ical: str, start: datetime, end: datetime) -> bool:
        try:
            event = next(iter(icalendar.Calendar.from_ical(ical).walk("VEVENT")))
            dtstart = _utc(event["DTSTART"].dt)
            dtend = _utc(event["DTEND"].dt) if "DTEND" in event else dtstart
        except Exception:
            ## a real server would have refused it on PUT; pass it on
            return True
        if dtend <= dtstart:
            return start <= dtstart < end
        return dtstart < end and dtend > start

    def _report(self, path, headers, data):
        query = etree.fromstring(data.encode("utf-8"))
        time_range = query.find(".//" + _caldav("time-range"))
        start = datetime.strptime(time_range.get("start"), "%Y%m%dT%H%M%SZ").replace(tzinfo=utc)
        end = datetime.strptime(time_range.get("end"), "%Y%m%dT%H%M%SZ").replace(tzinfo=utc)

        responses = []
        for obj_path, (etag, ical) in self.objects.items():
            if not self.sloppy and not self._matches(ical, start, end):
                continue
            props = [self._element(_dav("getetag"), etag)]
            if self.inline_data:
                props.append(self._element(_caldav("calendar-data"), ical))
            responses.append((obj_path, props))
        for name in self.vanished:
            responses.append((self.base_path + name, [self._element(_dav("getetag"), '"gone"')]))
        return self._multistatus(responses)


@pytest.fixture
def server() -> FakeCalDAVServer:
    return FakeCalDAVServer()


@pytest.fixture
def client(server) -> DAVClient:
    async def request(*args, **kwargs):
        return await server(*args, **kwargs)

    client = DAVClient.new_unauthenticated(CALENDAR_URL)
    client.session.request = AsyncMock(side_effect=request)
    return client


@pytest.fixture
def calendar(client):
    return client.calendar()
