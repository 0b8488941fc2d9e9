#!/usr/bin/env python
"""
Base class for everything living at a URL on the CalDAV server.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Union
from urllib.parse import ParseResult, SplitResult, unquote

from prospero.elements import dav
from prospero.elements.base import BaseElement
from prospero.lib import error
from prospero.lib.url import URL
from prospero.protocol import PropfindResult, build_propfind_body, parse_multistatus

if TYPE_CHECKING:
    from prospero.davclient import DAVClient

log = logging.getLogger("prospero")


class DAVObject:
    """
    Base class for all DAV objects.  Can be instantiated by a client
    and an absolute or relative URL, or from the parent object.  The
    object borrows the client's transport; it owns nothing but its URL
    and the properties already known about it.
    """

    url: Optional[URL] = None
    client: Optional["DAVClient"] = None
    parent: Optional["DAVObject"] = None

    def __init__(
        self,
        client: Optional["DAVClient"] = None,
        url: Union[str, ParseResult, SplitResult, URL, None] = None,
        parent: Optional["DAVObject"] = None,
        props: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Args:
          client: A DAVClient instance
          url: The url for this object.  May be a full URL or a relative URL.
          parent: The parent object
          props: a dict with known properties for this object
        """
        if client is None and parent is not None:
            client = parent.client
        self.client = client
        self.parent = parent
        self.props: Dict[str, Any] = props or {}
        # url may be a path relative to the calendar URL
        if client and url:
            self.url = client.url.join(url)
        else:
            self.url = URL.objectify(url)

    def _require_client(self) -> "DAVClient":
        if self.client is None:
            raise ValueError("Unexpected value None for self.client")
        if self.url is None:
            raise ValueError("Unexpected value None for self.url")
        return self.client

    async def _query_properties(
        self, props: Optional[Sequence[BaseElement]] = None, depth: int = 0
    ) -> List[PropfindResult]:
        """
        PROPFIND on this object, returns the parsed multistatus.
        """
        client = self._require_client()
        body = build_propfind_body(list(props or []))
        response = await client.propfind(self.url, body, depth)
        return parse_multistatus(response.content, huge_tree=client.huge_tree)

    async def get_properties(
        self, props: Optional[Sequence[BaseElement]] = None
    ) -> Dict[str, Any]:
        """Get properties (PROPFIND, depth 0) for this object.

        Args:
         props: ``[dav.DisplayName(), dav.GetEtag(), ...]``

        Returns:
          ``{proptag: value, ...}``
        """
        results = await self._query_properties(props, depth=0)
        path = unquote(self.url.path)
        if path.endswith("/"):
            exchange_path = path[:-1]
        else:
            exchange_path = path + "/"

        rc = None
        for result in results:
            if result.href in (path, exchange_path):
                rc = result.properties
                break
        else:
            if len(results) == 1:
                ## let's be pragmatic and accept whatever the server throws at us
                log.warning(
                    "Possibly the server has a path handling problem, possibly the URL configured is wrong.\n"
                    "Path expected: %s, path found: %s %s.\n"
                    "Continuing, probably everything will be fine"
                    % (path, results[0].href, error.ERR_FRAGMENT)
                )
                rc = results[0].properties
            else:
                raise error.MalformedResponse(
                    url=str(self.url),
                    reason="PROPFIND response does not describe %s (found %s)"
                    % (path, [r.href for r in results]),
                )

        self.props.update(rc)
        return rc

    async def get_property(
        self, prop: BaseElement, use_cached: bool = False
    ) -> Optional[Any]:
        """
        Wrapper for get_properties, when only one property is wanted

        Args:
         prop: the property to search for
         use_cached: don't send anything to the server if we've asked before
        """
        if use_cached and prop.tag in self.props:
            return self.props[prop.tag]
        found = await self.get_properties([prop])
        return found.get(prop.tag, None)

    async def get_display_name(self) -> Optional[str]:
        return await self.get_property(dav.DisplayName(), use_cached=True)

    async def delete(self) -> None:
        """
        Delete the object.  Sends If-Match when the etag is known, so a
        resource modified by somebody else is not deleted.
        """
        client = self._require_client()
        headers = {}
        etag = self.props.get(dav.GetEtag.tag)
        if etag:
            headers["If-Match"] = etag
        await client.delete(self.url, headers)

    def __str__(self) -> str:
        return str(self.props.get(dav.DisplayName.tag) or self.url)

    def __repr__(self) -> str:
        return "%s(%s)" % (self.__class__.__name__, self.url)
