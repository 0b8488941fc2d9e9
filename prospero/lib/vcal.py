#!/usr/bin/env python
"""
iCalendar (RFC 5545) encoding and decoding of events.

The heavy lifting (escaping, line folding, date formats) is done by
the icalendar library.  This module maps between the few fields a
class schedule needs and a VCALENDAR text with a single VEVENT in it.
"""
import datetime
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Optional
from typing import Union

import icalendar

from prospero.lib import error
from prospero.lib.python_utilities import to_normal_str

utc = datetime.timezone.utc

PRODID = "-//prospero//prospero//EN"

## Global counter.  We don't want to be too verbose on the users
fixup_error_loggings = 0


def fix(event: Union[str, bytes]) -> str:
    """This function receives some ical as it's given from the server, checks for
    breakages with the standard, and attempts to fix up known issues:

    1) COMPLETED MUST be a datetime in UTC according to the RFC, but sometimes
    a date is given.

    2) CREATED timestamps in year 0 make no sense; some servers
    generate them, some servers choke on them.  Moved to the epoch.

    3) Some servers duplicate the DTSTAMP property - keep the first
    DTSTAMP encountered.

    4) Trailing white space is removed from all lines.

    5) Some servers create events with both DTEND and DURATION set -
    which is forbidden according to the RFC.  Whatever comes last is
    dropped.
    """
    event = to_normal_str(event)
    if not event.endswith("\n"):
        event = event + "\n"

    ## 1) Add an arbitrary time if completed is given as date
    fixed = re.sub(
        r"COMPLETED(?:;VALUE=DATE)?:(\d+)\s", r"COMPLETED:\g<1>T120000Z\n", event
    )

    ## 2) CREATED timestamps prior to epoch does not make sense
    fixed = re.sub("CREATED:00001231T000000Z", "CREATED:19700101T000000Z", fixed)

    ## 4) trailing whitespace, except where the next line continues a folded line
    fixed = re.sub(r" +$(?!\n[ \t])", "", fixed, flags=re.MULTILINE)

    ## 3) and 5)
    fixed2 = (
        "\n".join(filter(LineFilterDiscardingDuplicates(), fixed.strip().split("\n")))
        + "\n"
    )

    if fixed2 != event:
        ## Rate-limited logging: only powers of two get logged as warnings
        global fixup_error_loggings
        fixup_error_loggings += 1
        if not (fixup_error_loggings & (fixup_error_loggings - 1)):
            _log = logging.getLogger("prospero").warning
        else:
            _log = logging.getLogger("prospero").debug

        _log(
            "Ical data was modified to work around a calendar server "
            "breaking the icalendar standard "
            f"(error count: {fixup_error_loggings} - this error is ratelimited)"
        )

    return fixed2


class LineFilterDiscardingDuplicates:
    """Needs to be a class because it keeps track of whether a certain
    group of date line was already encountered within a component.
    This must be called line by line in order on the complete text.
    """

    def __init__(self) -> None:
        self.stamped = 0
        self.ended = 0

    def __call__(self, line: str) -> bool:
        if line.startswith("BEGIN:V"):
            self.stamped = 0
            self.ended = 0

        elif re.match("(DURATION|DTEND|DUE)[:;]", line):
            if self.ended:
                return False
            self.ended += 1

        elif re.match("DTSTAMP[:;]", line):
            if self.stamped:
                return False
            self.stamped += 1

        return True


def to_utc(ts: Union[datetime.date, datetime.datetime]) -> datetime.datetime:
    """
    Coerce a timestamp to an aware UTC datetime.  Naive datetimes are
    assumed to be local time (python's own astimezone rule), dates are
    taken as midnight UTC.
    """
    if not isinstance(ts, datetime.datetime):
        return datetime.datetime(ts.year, ts.month, ts.day, tzinfo=utc)
    return ts.astimezone(utc)


@dataclass
class Event:
    """
    An event to be stored on the server.  start and end are instants;
    they are stored in UTC, truncated to whole seconds.
    """

    start: datetime.datetime
    end: datetime.datetime
    summary: str = ""
    description: str = ""
    uid: Optional[str] = None


def encode(event: Event, dtstamp: Optional[datetime.datetime] = None) -> str:
    """
    Serializes an event into a VCALENDAR with one VEVENT.  If the event
    carries no uid, one is generated and written back to event.uid so
    the caller can find the resource again.
    """
    if event.uid is None:
        event.uid = str(uuid.uuid1())

    my_instance = icalendar.Calendar()
    my_instance.add("prodid", PRODID)
    my_instance.add("version", "2.0")

    component = icalendar.Event()
    component.add("uid", event.uid)
    component.add("dtstamp", to_utc(dtstamp or datetime.datetime.now(tz=utc)).replace(microsecond=0))
    component.add("dtstart", to_utc(event.start).replace(microsecond=0))
    component.add("dtend", to_utc(event.end).replace(microsecond=0))
    ## empty texts are written too, so they read back as ""
    component.add("summary", event.summary)
    component.add("description", event.description)
    my_instance.add_component(component)

    return to_normal_str(my_instance.to_ical())


class VEventData:
    """
    Decoded VEVENT.  Every accessor is fallible on its own, as a
    server may hand out events lacking any of the properties.
    """

    def __init__(self, component: icalendar.Event, url: Optional[str] = None) -> None:
        self.component = component
        self.url = url

    def _get(self, name: str):
        if name not in self.component:
            raise error.MissingField(name, url=self.url)
        return self.component[name]

    def summary(self) -> str:
        return str(self._get("SUMMARY"))

    def description(self) -> str:
        return str(self._get("DESCRIPTION"))

    def uid(self) -> str:
        return str(self._get("UID"))

    def _dt(self, name: str):
        """
        The value of a date, date-time or duration property.  Raises
        MalformedCalendarData if it could not be parsed.
        """
        prop = self._get(name)
        kind = datetime.timedelta if name == "DURATION" else datetime.date
        try:
            ## icalendar 7 raises BrokenCalendarProperty (a ValueError),
            ## older versions keep the raw text without a dt attribute
            value = prop.dt
        except (ValueError, AttributeError) as err:
            raise error.MalformedCalendarData(self.url, f"unparseable {name} {prop!r}") from err
        if not isinstance(value, kind):
            raise error.MalformedCalendarData(self.url, f"unparseable {name} {prop!r}")
        return value

    def start_time(self) -> datetime.datetime:
        return self._as_utc(self._dt("DTSTART"))

    def end_time(self) -> datetime.datetime:
        if "DTEND" in self.component:
            return self._as_utc(self._dt("DTEND"))
        dtstart = self._dt("DTSTART")
        if "DURATION" in self.component:
            return self._as_utc(dtstart) + self._dt("DURATION")
        if not isinstance(dtstart, datetime.datetime):
            ## RFC 5545 3.6.1: an all-day event without DTEND lasts one day
            return self._as_utc(dtstart) + datetime.timedelta(days=1)
        return self._as_utc(dtstart)

    def is_recurring(self) -> bool:
        return "RRULE" in self.component or "RDATE" in self.component

    @staticmethod
    def _as_utc(ts) -> datetime.datetime:
        ## floating times are taken as UTC
        if isinstance(ts, datetime.datetime) and ts.tzinfo is None:
            return ts.replace(tzinfo=utc)
        return to_utc(ts)


def decode(text: Union[str, bytes], url: Optional[str] = None) -> VEventData:
    """
    Parses iCalendar text and returns the first VEVENT in it.  Raises
    MalformedCalendarData if the text cannot be parsed, holds no VEVENT,
    or holds a DTSTART, DTEND or DURATION that cannot be parsed.
    """
    if not text:
        raise error.MalformedCalendarData(url, "empty calendar data")
    try:
        ical = icalendar.Calendar.from_ical(fix(text))
    except (ValueError, IndexError, KeyError) as err:
        raise error.MalformedCalendarData(url, str(err)) from err

    for component in ical.walk("VEVENT"):
        vevent = VEventData(component, url=url)
        for name in ("DTSTART", "DTEND", "DURATION"):
            if name in component:
                vevent._dt(name)
        return vevent
    raise error.MalformedCalendarData(url, "no VEVENT found")
