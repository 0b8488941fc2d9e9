"""
Credentials for the CalDAV client.

A client is either unauthenticated (no Authorization header is ever
sent) or carries a username/password pair for HTTP Basic auth.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from typing import Union

from niquests.auth import AuthBase
from niquests.auth import HTTPBasicAuth


@dataclass(frozen=True)
class Unauthenticated:
    """No credentials - requests go out without an Authorization header"""

    def auth_object(self) -> Optional[AuthBase]:
        return None


@dataclass(frozen=True)
class BasicAuth:
    username: str
    password: str

    def auth_object(self) -> Optional[AuthBase]:
        return HTTPBasicAuth(self.username, self.password)

    def __repr__(self) -> str:
        ## keep the password out of logs and tracebacks
        return "BasicAuth(username=%r, password='***')" % self.username


Credentials = Union[Unauthenticated, BasicAuth]


def credentials_from(
    username: Optional[str] = None, password: Optional[str] = None
) -> Credentials:
    """
    Unauthenticated unless a username is given.  An empty password is
    allowed (some servers accept any password for a known user).
    """
    if username is None:
        return Unauthenticated()
    return BasicAuth(username, password or "")


def extract_auth_types(header: str) -> set[str]:
    """
    Extract authentication types from WWW-Authenticate header.

    Example:
        >>> extract_auth_types('Basic realm="test", Digest realm="test"')
        {'basic', 'digest'}

    Reference:
        https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/WWW-Authenticate#syntax
    """
    return {h.split()[0] for h in header.lower().split(",") if h.strip()}
