#!/usr/bin/env python
"""
Elements of the calendarserver.org and nextcloud.com namespaces.

Neither is described in any RFC, but subscriptions (webcal), ctags and
the birthday calendar of Nextcloud/SabreDAV servers depend on them.
"""
from typing import ClassVar

from .base import BaseElement
from .base import ValuedBaseElement
from caldav_service.lib.namespace import ns


# Resource types
class Subscribed(BaseElement):
    tag: ClassVar[str] = ns("CS", "subscribed")


# Properties
class Source(BaseElement):
    tag: ClassVar[str] = ns("CS", "source")


class GetCTag(ValuedBaseElement):
    tag: ClassVar[str] = ns("CS", "getctag")


# Operations
class EnableBirthdayCalendar(BaseElement):
    tag: ClassVar[str] = ns("NC", "enable-birthday-calendar")
