#!/usr/bin/env python
from typing import ClassVar

from .base import BaseElement
from .base import NamedBaseElement
from .base import ValuedBaseElement
from caldav_service.lib.namespace import ns


class Comp(NamedBaseElement):
    tag: ClassVar[str] = ns("C", "comp")


# Properties
class CalendarUserAddressSet(BaseElement):
    tag: ClassVar[str] = ns("C", "calendar-user-address-set")


class CalendarUserType(BaseElement):
    tag: ClassVar[str] = ns("C", "calendar-user-type")


class CalendarHomeSet(BaseElement):
    tag: ClassVar[str] = ns("C", "calendar-home-set")


class ScheduleInboxURL(BaseElement):
    tag: ClassVar[str] = ns("C", "schedule-inbox-URL")


class ScheduleOutboxURL(BaseElement):
    tag: ClassVar[str] = ns("C", "schedule-outbox-URL")


# Resource types, see rfc4791, sec. 4.2 and rfc6638, sec. 2.1 and 2.2
class Calendar(BaseElement):
    tag: ClassVar[str] = ns("C", "calendar")


class ScheduleInbox(BaseElement):
    tag: ClassVar[str] = ns("C", "schedule-inbox")


class ScheduleOutbox(BaseElement):
    tag: ClassVar[str] = ns("C", "schedule-outbox")


class CalendarTimeZone(ValuedBaseElement):
    tag: ClassVar[str] = ns("C", "calendar-timezone")


class SupportedCalendarComponentSet(ValuedBaseElement):
    tag: ClassVar[str] = ns("C", "supported-calendar-component-set")
