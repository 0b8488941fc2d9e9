#!/usr/bin/env python
"""
WebDAV elements, RFC 4918 section 14 (and section 15 for the
properties).  Request bodies are built from the first group; the
second group is only used for its tags when parsing a multistatus.
"""
from typing import ClassVar

from .base import BaseElement
from .base import ValuedBaseElement
from prospero.lib.namespace import ns


## Request bodies
class Propfind(BaseElement):
    tag: ClassVar[str] = ns("D", "propfind")


class Prop(BaseElement):
    tag: ClassVar[str] = ns("D", "prop")


## Properties (section 15)
class DisplayName(ValuedBaseElement):
    tag: ClassVar[str] = ns("D", "displayname")


class GetEtag(ValuedBaseElement):
    tag: ClassVar[str] = ns("D", "getetag")


class ResourceType(BaseElement):
    """Holds a Collection (and for calendars a cdav.Calendar)"""

    tag: ClassVar[str] = ns("D", "resourcetype")


class Collection(BaseElement):
    tag: ClassVar[str] = ns("D", "collection")


## Multistatus answers (section 13)
class MultiStatus(BaseElement):
    tag: ClassVar[str] = ns("D", "multistatus")


class Response(BaseElement):
    tag: ClassVar[str] = ns("D", "response")


class Href(BaseElement):
    tag: ClassVar[str] = ns("D", "href")


class PropStat(BaseElement):
    tag: ClassVar[str] = ns("D", "propstat")


class Status(BaseElement):
    tag: ClassVar[str] = ns("D", "status")


class Error(BaseElement):
    tag: ClassVar[str] = ns("D", "error")
