#!/usr/bin/env python
"""
The CalDAV client: an HTTP transport speaking the handful of WebDAV
and CalDAV verbs needed (PROPFIND, REPORT, PUT, GET, DELETE), bound to
one calendar collection URL.

    async with DAVClient.new_unauthenticated(url) as client:
        calendar = client.calendar()
        await calendar.save_event(Event(summary="...", start=..., end=...))
        events = await calendar.date_search(start, end)
"""

import logging
import sys
from collections.abc import Mapping
from types import TracebackType
from typing import TYPE_CHECKING, Any, Optional, Union
from urllib.parse import ParseResult, SplitResult, unquote

from niquests import AsyncSession
from niquests.exceptions import RequestException
from niquests.models import Response
from niquests.structures import CaseInsensitiveDict

from prospero import __version__
from prospero.lib import error
from prospero.lib.auth import Credentials, Unauthenticated, credentials_from, extract_auth_types
from prospero.lib.python_utilities import to_normal_str, to_wire
from prospero.lib.url import URL

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

if TYPE_CHECKING:
    from prospero.collection import Calendar

log = logging.getLogger("prospero")

XML_CONTENT_TYPE = 'application/xml; charset="utf-8"'
ICAL_CONTENT_TYPE = 'text/calendar; charset="utf-8"'


class DAVResponse:
    """
    Response from a DAV request.

    Holds status, reason, headers and the raw body.  XML bodies are
    parsed by the functions in prospero.protocol.  End users typically
    won't interact with this class directly.
    """

    reason: str = ""
    status: int = 0

    def __init__(self, response: Response, davclient: Optional["DAVClient"] = None) -> None:
        self.headers = CaseInsensitiveDict(response.headers or {})
        self.status = response.status_code
        self.reason = getattr(response, "reason", None) or ""
        self.davclient = davclient
        log.debug("response headers: " + str(self.headers))
        log.debug("response status: " + str(self.status))

        self.content: bytes = response.content or b""

        content_type = self.headers.get("Content-Type", "")
        known = ("text/xml", "application/xml", "text/plain", "text/calendar", "application/octet-stream")
        if (
            content_type
            and not any(content_type.startswith(x) for x in known)
            and self.status < 400
            and self.content
        ):
            error.weirdness(f"Unexpected content type: {content_type}")

        ## some servers mix CRLF and LF; normalize before logging and parsing
        self._raw = self.content.replace(b"\r\n", b"\n")
        log.debug(self._raw)

    @property
    def raw(self) -> str:
        return to_normal_str(self._raw)

    @property
    def etag(self) -> Optional[str]:
        return self.headers.get("ETag")


class DAVClient:
    """
    Async WebDAV/CalDAV client bound to one calendar collection.

    Construction does no I/O.  The client holds no state besides the
    (read-only) credentials and the niquests session, so it may be
    shared between concurrent tasks.
    """

    proxy: Optional[str] = None
    url: URL = None
    huge_tree: bool = False

    def __init__(
        self,
        url: Union[str, ParseResult, SplitResult, URL],
        credentials: Optional[Credentials] = None,
        proxy: Optional[str] = None,
        timeout: Optional[float] = None,
        ssl_verify_cert: Union[bool, str] = True,
        ssl_cert: Union[str, tuple[str, str], None] = None,
        headers: Optional[Mapping[str, str]] = None,
        huge_tree: bool = False,
    ) -> None:
        """
        Args:
            url: URL of the calendar collection.  Username and password
                 embedded in the URL are used if no credentials are given.
            credentials: Unauthenticated() or BasicAuth(username, password).
            proxy: Proxy server (scheme://hostname:port).
            timeout: Request timeout in seconds, handed to niquests.
            ssl_verify_cert: SSL certificate verification (bool or CA bundle path).
            ssl_cert: Client SSL certificate (path or (cert, key) tuple).
            headers: Additional headers for all requests.
            huge_tree: Enable XMLParser huge_tree for large responses (security consideration).
        """
        self.url = URL.objectify(url)
        if not self.url:
            raise ValueError("a calendar URL is required")

        if credentials is None:
            if self.url.username:
                credentials = credentials_from(
                    unquote(self.url.username), unquote(self.url.password or "")
                )
            else:
                credentials = Unauthenticated()
        if self.url.is_auth():
            self.url = self.url.unauth()
        self.credentials = credentials
        self.auth = credentials.auth_object()

        self.proxy = proxy
        if self.proxy is not None and "://" not in self.proxy:
            self.proxy = "http://" + self.proxy

        self.timeout = timeout
        self.ssl_verify_cert = ssl_verify_cert
        self.ssl_cert = ssl_cert
        self.huge_tree = huge_tree

        self.headers: dict[str, str] = {
            "User-Agent": f"prospero/{__version__}",
        }
        self.headers.update(headers or {})

        self.session = AsyncSession()

    @classmethod
    def new(cls, url: Union[str, URL], credentials: Credentials, **kwargs: Any) -> "DAVClient":
        return cls(url, credentials=credentials, **kwargs)

    @classmethod
    def new_unauthenticated(cls, url: Union[str, URL], **kwargs: Any) -> "DAVClient":
        return cls(url, credentials=Unauthenticated(), **kwargs)

    def calendar(self, url: Union[str, URL, None] = None) -> "Calendar":
        """
        Returns a handle on the calendar collection (the client URL
        unless another one is given).  Does no I/O.
        """
        ## Late import to avoid circular imports
        from prospero.collection import Calendar

        return Calendar(client=self, url=url if url is not None else self.url)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the async session."""
        await self.session.close()

    def __repr__(self) -> str:
        return "%s(%s, %r)" % (self.__class__.__name__, self.url, self.credentials)

    @staticmethod
    def _build_method_headers(
        method: str, depth: Optional[int] = None, extra_headers: Optional[Mapping[str, str]] = None
    ) -> dict[str, str]:
        """
        Depth header for PROPFIND/REPORT, content type for the verbs
        carrying a body, plus whatever extra headers are given.
        """
        headers: dict[str, str] = {}

        if depth is not None:
            headers["Depth"] = str(depth)

        if method in ("PROPFIND", "REPORT"):
            headers["Content-Type"] = XML_CONTENT_TYPE
        elif method == "PUT":
            headers["Content-Type"] = ICAL_CONTENT_TYPE

        if extra_headers:
            headers.update(extra_headers)

        return headers

    async def request(
        self,
        url: Union[str, URL],
        method: str = "GET",
        body: Union[str, bytes] = "",
        headers: Optional[Mapping[str, str]] = None,
    ) -> DAVResponse:
        """
        Send one HTTP request.  Network level failures are raised as
        TransportError, 401 and 403 as AuthorizationError.  Other
        statuses are left for the caller to interpret.
        """
        combined_headers = self.headers.copy()
        combined_headers.update(headers or {})
        if not body and "Content-Type" in combined_headers:
            del combined_headers["Content-Type"]

        url_obj = self.url.join(url)

        proxies = None
        if self.proxy is not None:
            proxies = {url_obj.scheme: self.proxy}
            log.debug(f"using proxy - {proxies}")

        log.debug(
            f"sending request - method={method}, url={str(url_obj)}, headers={combined_headers}\nbody:\n{to_normal_str(body)}"
        )

        try:
            r = await self.session.request(
                method,
                str(url_obj),
                data=to_wire(body) if body else None,
                headers=combined_headers,
                proxies=proxies,
                auth=self.auth,
                timeout=self.timeout,
                verify=self.ssl_verify_cert,
                cert=self.ssl_cert,
            )
        except RequestException as err:
            log.debug(f"{method} {url_obj} failed: {err}")
            raise error.TransportError(url=str(url_obj), reason=str(err)) from err

        log.debug(f"server responded with {r.status_code} {r.reason}")
        response = DAVResponse(r, self)

        if response.status == 401 and self.auth is None:
            msg = "The server requires authentication, but no credentials were given."
            if response.headers.get("WWW-Authenticate"):
                auth_types = extract_auth_types(response.headers["WWW-Authenticate"])
                msg += "  Supported authentication types: {}".format(
                    ", ".join(sorted(auth_types))
                )
            log.warning(msg)

        if response.status in (401, 403):
            raise error.AuthorizationError(
                url=str(url_obj), reason=response.reason or "None given", status=response.status
            )

        return response

    def _check_status(
        self, method: str, response: DAVResponse, url: Union[str, URL], ok=range(200, 300)
    ) -> DAVResponse:
        """
        Raises the typed error matching the verb and status, or returns
        the response as is.
        """
        if response.status in ok:
            return response
        url = str(self.url.join(url))
        if response.status == 404:
            raise error.NotFoundError(url=url, reason=error.errmsg(response), status=404)
        if method in ("put", "delete") and response.status in (409, 412):
            raise error.ConflictError(
                url=url, reason=error.errmsg(response), status=response.status
            )
        raise error.exception_by_method[method](
            url=url, reason=error.errmsg(response), status=response.status
        )

    # ==================== HTTP Method Wrappers ====================
    # Query methods (URL optional - defaults to self.url)

    async def propfind(
        self,
        url: Union[str, URL, None] = None,
        body: Union[str, bytes] = "",
        depth: int = 0,
        headers: Optional[Mapping[str, str]] = None,
    ) -> DAVResponse:
        """
        Send a PROPFIND request.

        Args:
            url: Target URL (defaults to self.url).
            body: XML properties request.
            depth: 0 for the resource itself, 1 for its immediate children.
            headers: Additional headers.

        Returns:
            DAVResponse with a multistatus body
        """
        url = url or self.url
        final_headers = self._build_method_headers("PROPFIND", depth, headers)
        response = await self.request(url, "PROPFIND", body, final_headers)
        return self._check_status("propfind", response, url)

    async def report(
        self,
        url: Union[str, URL, None] = None,
        body: Union[str, bytes] = "",
        depth: int = 1,
        headers: Optional[Mapping[str, str]] = None,
    ) -> DAVResponse:
        """
        Send a REPORT request.

        Args:
            url: Target URL (defaults to self.url).
            body: XML report request, i.e. a calendar-query.
            depth: Depth header, 1 for searching a calendar collection.
            headers: Additional headers.

        Returns:
            DAVResponse with a multistatus body
        """
        url = url or self.url
        final_headers = self._build_method_headers("REPORT", depth, headers)
        response = await self.request(url, "REPORT", body, final_headers)
        return self._check_status("report", response, url)

    # ==================== Resource Methods (URL required) ====================

    async def put(
        self,
        url: Union[str, URL],
        body: Union[str, bytes],
        headers: Optional[Mapping[str, str]] = None,
    ) -> DAVResponse:
        """
        Send a PUT request with an iCalendar body.

        Raises ConflictError on 409 and 412 (a concurrent modification
        or a failed If-Match/If-None-Match precondition), PutError on
        other failures.
        """
        final_headers = self._build_method_headers("PUT", None, headers)
        response = await self.request(url, "PUT", body, final_headers)
        return self._check_status("put", response, url)

    async def get(
        self,
        url: Union[str, URL],
        headers: Optional[Mapping[str, str]] = None,
    ) -> DAVResponse:
        """
        Send a GET request.  Raises NotFoundError on 404.
        """
        response = await self.request(url, "GET", "", headers)
        return self._check_status("get", response, url)

    async def delete(
        self,
        url: Union[str, URL],
        headers: Optional[Mapping[str, str]] = None,
    ) -> DAVResponse:
        """
        Send a DELETE request.  Raises NotFoundError on 404.
        """
        response = await self.request(url, "DELETE", "", headers)
        return self._check_status("delete", response, url)


# ==================== Factory Function ====================


def get_davclient(
    url: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    config_file: Optional[str] = None,
    config_section: str = "default",
    **kwargs: Any,
) -> DAVClient:
    """
    Get a DAV client instance.

    Connection parameters are taken from the arguments, then from the
    PROSPERO_URL, PROSPERO_USERNAME, PROSPERO_PASSWORD and
    PROSPERO_TIMEOUT environment variables, then from the config
    file (see prospero.config).  No request is sent.

    Example:
        async with get_davclient(url="...", username="...", password="...") as client:
            events = await client.calendar().date_search(start, end)
    """
    from prospero.config import get_connection_params

    params = get_connection_params(
        config_file=config_file,
        config_section_name=config_section,
        url=url,
        username=username,
        password=password,
        timeout=kwargs.pop("timeout", None),
    )

    if not params.get("url"):
        raise ValueError(
            "URL is required. Provide via url parameter, PROSPERO_URL environment variable or a config file."
        )

    ## credentials embedded in the URL are used when no username is found
    credentials = kwargs.pop("credentials", None)
    if credentials is None and params.get("username") is not None:
        credentials = credentials_from(params["username"], params.get("password"))

    return DAVClient(
        params["url"],
        credentials=credentials,
        timeout=params.get("timeout"),
        **kwargs,
    )
