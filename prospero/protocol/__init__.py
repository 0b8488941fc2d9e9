"""
Sans-I/O part of the CalDAV client.

- types: result types for parsed responses
- xml_builders: pure functions building XML request bodies
- xml_parsers: pure functions parsing multistatus response bodies

The client (prospero.davclient) does the I/O, the objects in
prospero.collection and prospero.search glue the pieces together.
"""

from .types import CalendarQueryResult, PropfindResult
from .xml_builders import build_calendar_query_body, build_propfind_body
from .xml_parsers import parse_calendar_query_response, parse_multistatus

__all__ = [
    # Types
    "CalendarQueryResult",
    "PropfindResult",
    # Builders
    "build_calendar_query_body",
    "build_propfind_body",
    # Parsers
    "parse_calendar_query_response",
    "parse_multistatus",
]
