#!/usr/bin/env python
from typing import ClassVar

from .base import BaseElement
from .base import ValuedBaseElement
from caldav_service.lib.namespace import ns


# Operations
class Propfind(BaseElement):
    tag: ClassVar[str] = ns("D", "propfind")


class Mkcol(BaseElement):
    tag: ClassVar[str] = ns("D", "mkcol")


class PrincipalPropertySearch(BaseElement):
    tag: ClassVar[str] = ns("D", "principal-property-search")

    def __init__(self, test: str = "anyof") -> None:
        super(PrincipalPropertySearch, self).__init__()
        self.attributes["test"] = test


class PropertySearch(BaseElement):
    tag: ClassVar[str] = ns("D", "property-search")


class ApplyToPrincipalCollectionSet(BaseElement):
    tag: ClassVar[str] = ns("D", "apply-to-principal-collection-set")


# Conditions
class Match(ValuedBaseElement):
    tag: ClassVar[str] = ns("D", "match")


class SyncToken(ValuedBaseElement):
    tag: ClassVar[str] = ns("D", "sync-token")


# Components / Data
class Prop(BaseElement):
    tag: ClassVar[str] = ns("D", "prop")


class Collection(BaseElement):
    tag: ClassVar[str] = ns("D", "collection")


class Principal(BaseElement):
    tag: ClassVar[str] = ns("D", "principal")


class Set(BaseElement):
    tag: ClassVar[str] = ns("D", "set")


# Properties
class ResourceType(BaseElement):
    tag: ClassVar[str] = ns("D", "resourcetype")


class DisplayName(ValuedBaseElement):
    tag: ClassVar[str] = ns("D", "displayname")


class Href(ValuedBaseElement):
    tag: ClassVar[str] = ns("D", "href")


class Response(BaseElement):
    tag: ClassVar[str] = ns("D", "response")


class Status(BaseElement):
    tag: ClassVar[str] = ns("D", "status")


class PropStat(BaseElement):
    tag: ClassVar[str] = ns("D", "propstat")


class MultiStatus(BaseElement):
    tag: ClassVar[str] = ns("D", "multistatus")


class CurrentUserPrincipal(BaseElement):
    tag: ClassVar[str] = ns("D", "current-user-principal")


class PrincipalCollectionSet(BaseElement):
    tag: ClassVar[str] = ns("D", "principal-collection-set")
