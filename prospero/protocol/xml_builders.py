"""
Pure functions for building CalDAV XML request bodies.

All functions in this module are pure - they take data in and return XML out,
with no side effects or I/O.
"""
from datetime import datetime
from typing import List
from typing import Optional

from lxml import etree

from prospero.elements import cdav
from prospero.elements import dav
from prospero.elements.base import BaseElement
from prospero.lib import error


def _serialize(root: BaseElement) -> bytes:
    return etree.tostring(
        root.xmlelement(),
        encoding="utf-8",
        xml_declaration=True,
        pretty_print=error.debug_dump_communication,
    )


def build_propfind_body(props: Optional[List[BaseElement]] = None) -> bytes:
    """
    Build PROPFIND request body XML.

    Args:
        props: Property elements to retrieve, i.e. ``[dav.GetEtag()]``.
               None gives an empty prop list.

    Returns:
        UTF-8 encoded XML bytes
    """
    return _serialize(dav.Propfind() + (dav.Prop() + (props or [])))


def build_calendar_query_body(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    comp_filter: str = "VEVENT",
    props: Optional[List[BaseElement]] = None,
) -> bytes:
    """
    Build calendar-query REPORT request body, ref RFC 4791 section 7.8.

    Args:
        start: Start of time range filter
        end: End of time range filter
        comp_filter: Component type filter name (VEVENT, VTODO, VJOURNAL)
        props: Properties to ask for besides calendar-data

    Returns:
        UTF-8 encoded XML bytes
    """
    prop = dav.Prop() + ([dav.GetEtag(), cdav.CalendarData()] + (props or []))

    component = cdav.CompFilter(comp_filter)
    if start is not None or end is not None:
        component += cdav.TimeRange(start, end)
    vcalendar = cdav.CompFilter("VCALENDAR") + component

    root = cdav.CalendarQuery() + [prop, cdav.Filter() + vcalendar]
    return _serialize(root)
