"""
Pure functions for parsing WebDAV/CalDAV multistatus responses.

All functions in this module are pure - they take XML bytes in and return
structured data out, with no side effects or I/O.
"""

from typing import Any, List, Optional, Tuple, Union
from urllib.parse import unquote

from lxml import etree
from lxml.etree import _Element

from prospero.elements import cdav, dav
from prospero.lib import error
from prospero.lib.url import URL

from .types import CalendarQueryResult, PropfindResult


def _parse_xml(body: Union[bytes, str], huge_tree: bool = False) -> _Element:
    """
    Parse an XML body, raising MalformedResponse if it isn't XML.
    """
    if isinstance(body, str):
        body = body.encode("utf-8")
    if not body or not body.strip():
        raise error.MalformedResponse(reason="empty body where XML was expected")
    parser = etree.XMLParser(
        remove_blank_text=True, huge_tree=huge_tree, resolve_entities=False
    )
    try:
        return etree.fromstring(body, parser)
    except etree.XMLSyntaxError as err:
        raise error.MalformedResponse(reason=f"invalid XML: {err}") from err


def parse_multistatus(
    body: Union[bytes, str],
    huge_tree: bool = False,
) -> List[PropfindResult]:
    """
    Parse a 207 Multi-Status response body, i.e. the answer to a PROPFIND.

    Args:
        body: Raw XML response bytes
        huge_tree: Allow parsing very large XML documents

    Returns:
        One PropfindResult per DAV:response element

    Raises:
        MalformedResponse: If body is not a multistatus document
        ResponseError: If a response carries an unexpected status
    """
    responses: List[PropfindResult] = []
    for elem in _strip_to_multistatus(_parse_xml(body, huge_tree)):
        if elem.tag != dav.Response.tag:
            continue

        href, propstats, status = _parse_response_element(elem)
        responses.append(
            PropfindResult(
                href=href,
                properties=_extract_properties(propstats),
                status=_status_to_code(status),
            )
        )

    return responses


def parse_calendar_query_response(
    body: Union[bytes, str],
    huge_tree: bool = False,
) -> List[CalendarQueryResult]:
    """
    Parse a calendar-query REPORT response.

    Args:
        body: Raw XML response bytes
        huge_tree: Allow parsing very large XML documents

    Returns:
        List of CalendarQueryResult.  calendar_data is None when the
        server did not inline it.
    """
    results: List[CalendarQueryResult] = []

    for elem in _strip_to_multistatus(_parse_xml(body, huge_tree)):
        if elem.tag != dav.Response.tag:
            continue

        href, propstats, status = _parse_response_element(elem)
        properties = _extract_properties(propstats)

        results.append(
            CalendarQueryResult(
                href=href,
                etag=properties.get(dav.GetEtag.tag),
                calendar_data=properties.get(cdav.CalendarData.tag),
                status=_status_to_code(status),
            )
        )

    return results


# Helper functions


def _strip_to_multistatus(tree: _Element) -> Union[_Element, List[_Element]]:
    """
    The general format is:
        <xml><multistatus>
            <response>...</response>
            <response>...</response>
        </multistatus></xml>

    but sometimes the multistatus and/or xml element is missing.
    Returns the element(s) containing responses.
    """
    if tree.tag == "xml" and len(tree) > 0 and tree[0].tag == dav.MultiStatus.tag:
        return tree[0]
    if tree.tag == dav.MultiStatus.tag:
        return tree
    if tree.tag == dav.Response.tag:
        return [tree]
    raise error.MalformedResponse(
        reason=f"expected a multistatus document, got {tree.tag}"
    )


def _parse_response_element(
    response: _Element,
) -> Tuple[str, List[_Element], Optional[str]]:
    """
    One response should contain one or zero status children, one
    href tag and zero or more propstats.

    Returns:
        Tuple of (href, propstat elements list, status string)
    """
    status: Optional[str] = None
    href: Optional[str] = None
    propstats: List[_Element] = []

    for elem in response:
        if elem.tag == dav.Status.tag:
            status = elem.text
            _validate_status(status)
        elif elem.tag == dav.Href.tag:
            error.assert_(not href)
            href = unquote(elem.text or "")
            ## Some servers return absolute URLs, the callers expect paths
            if ":" in href:
                href = unquote(URL(href).path)
        elif elem.tag == dav.PropStat.tag:
            propstats.append(elem)
        elif elem.tag != dav.Error.tag:
            error.weirdness("unexpected element found in response", elem)

    if not href:
        raise error.MalformedResponse(reason="response element without href")
    return (href, propstats, status)


def _extract_properties(propstats: List[_Element]) -> dict[str, Any]:
    """
    Extract properties from propstat elements into a dict.  The
    properties may be delivered either in one propstat with multiple
    props or in multiple propstats.  Properties in a 404 propstat are
    skipped.
    """
    properties: dict[str, Any] = {}

    for propstat in propstats:
        status_elem = propstat.find(dav.Status.tag)
        if status_elem is not None and status_elem.text:
            _validate_status(status_elem.text)
            if " 404 " in status_elem.text:
                continue

        prop = propstat.find(dav.Prop.tag)
        if prop is None:
            continue

        for child in prop:
            if len(child) == 0:
                properties[child.tag] = child.text
            else:
                properties[child.tag] = _element_to_value(child)

    return properties


def _element_to_value(elem: _Element) -> Any:
    """
    Convert an XML element with children to a Python value.
    resourcetype becomes the list of child tags, anything else the
    list of child texts.
    """
    if elem.tag == dav.ResourceType.tag:
        return [child.tag for child in elem]

    return [child.text if child.text else child.tag for child in elem]


def _validate_status(status: Optional[str]) -> None:
    """
    status is a string like "HTTP/1.1 404 Not Found".  200, 201, 207
    and 404 are considered acceptable.
    """
    if status is None:
        return

    acceptable = (" 200 ", " 201 ", " 207 ", " 404 ")
    if not any(code in status for code in acceptable):
        raise error.ResponseError(reason=status, status=_status_to_code(status))


def _status_to_code(status: Optional[str]) -> int:
    """
    Extract status code from status string like "HTTP/1.1 200 OK".
    Defaults to 200 if there is no status or it can't be parsed.
    """
    if not status:
        return 200

    parts = status.split()
    if len(parts) >= 2:
        try:
            return int(parts[1])
        except ValueError:
            pass

    return 200
