#!/usr/bin/env python
import sys
from typing import Any
from typing import Optional
from typing import Union
from urllib.parse import ParseResult
from urllib.parse import quote
from urllib.parse import SplitResult
from urllib.parse import unquote
from urllib.parse import urlparse
from urllib.parse import urlunparse

from prospero.lib.python_utilities import to_unicode

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

DEFAULT_PORTS = {"https": 443, "http": 80}


class URL:
    """
    Wraps URLs into objects.  Used internally; every method in the
    library that accepts a URL can be fed a URL object, a string or a
    urllib ParseResult.

    An address may be:

    1) a path relative to the calendar URL, i.e. "some-uid.ics"

    2) an absolute path, i.e. "/user/calendars/calendar/some-uid.ics"

    3) a fully qualified URL, i.e.
    "http://localhost:8080/user/calendars/calendar/some-uid.ics".
    Hostname and port are given when instantiating the DAVClient
    and cannot be overridden later.
    """

    def __init__(self, url: Union[str, ParseResult, SplitResult]) -> None:
        if isinstance(url, (ParseResult, SplitResult)):
            self.url_parsed: Optional[Union[ParseResult, SplitResult]] = url
            self.url_raw: Optional[str] = None
        else:
            self.url_raw = to_unicode(url)
            self.url_parsed = None

    def __bool__(self) -> bool:
        return bool(self.url_raw or self.url_parsed)

    def __ne__(self, other: object) -> bool:
        return not self == other

    def __eq__(self, other: object) -> bool:
        if str(self) == str(other):
            return True
        ## The URLs could have insignificant differences
        me = self.canonical()
        if isinstance(other, (str, ParseResult, SplitResult)):
            other = URL(other)
        if isinstance(other, URL):
            other = other.canonical()
        return str(me) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))

    @classmethod
    def objectify(cls, url: Union[Self, str, ParseResult, SplitResult, None]) -> Optional["URL"]:
        """Returns url if it's already a URL object, else wraps it"""
        if url is None or isinstance(url, URL):
            return url
        return URL(url)

    ## Gives access to scheme, hostname, port, path etc
    def __getattr__(self, attr: str) -> Any:
        if "url_parsed" not in vars(self):
            raise AttributeError(attr)
        if self.url_parsed is None:
            self.url_parsed = urlparse(self.url_raw)
        return getattr(self.url_parsed, attr)

    def __str__(self) -> str:
        if self.url_raw is None:
            self.url_raw = self.url_parsed.geturl()
        return self.url_raw

    def __repr__(self) -> str:
        return "URL(%s)" % str(self)

    def is_auth(self) -> bool:
        return self.username is not None

    def unauth(self) -> "URL":
        if not self.is_auth():
            return self
        return URL(
            ParseResult(
                self.scheme,
                "%s:%s" % (self.hostname, self.port or DEFAULT_PORTS[self.scheme]),
                self.path.replace("//", "/"),
                self.params,
                self.query,
                self.fragment,
            )
        )

    def canonical(self) -> "URL":
        """
        a canonical URL ... remove authentication details, no double
        slashes, explicit port, and the path properly quoted
        """
        url = self.unauth()
        arr = list(urlparse(str(url)))
        arr[2] = quote(unquote(arr[2].replace("//", "/")))
        if not arr[0]:
            arr[0] = "https"
        if arr[1] and ":" not in arr[1] and arr[0] in DEFAULT_PORTS:
            arr[1] += ":%i" % DEFAULT_PORTS[arr[0]]
        return URL(urlunparse(arr))

    def join(self, path: Any) -> "URL":
        """
        assumes this object is the base URL or base path.  If the path
        is relative, it is appended to the base.  If the path is
        absolute, it is combined with the connection details of self.
        If the path carries connection details differing from self,
        ValueError is raised.
        """
        if not path or not str(path):
            return self
        path = URL.objectify(path)
        if (
            (path.scheme and self.scheme and path.scheme != self.scheme)
            or (path.hostname and self.hostname and path.hostname != self.hostname)
            or (path.port and self.port and path.port != self.port)
        ):
            raise ValueError("%s can't be joined with %s" % (self, path))

        if path.path.startswith("/"):
            ret_path = path.path
        else:
            sep = "" if self.path.endswith("/") else "/"
            ret_path = "%s%s%s" % (self.path, sep, path.path)
        return URL(
            ParseResult(
                self.scheme or path.scheme,
                self.netloc or path.netloc,
                ret_path,
                path.params,
                path.query,
                path.fragment,
            )
        )
