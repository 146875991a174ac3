#!/usr/bin/env python
"""
Calendar homes: the collections holding a principal's calendars and
scheduling inbox/outbox, and the home of the publicly shared calendars.
"""
import logging
import re
import unicodedata
import uuid
from typing import Callable, Iterable, List, Optional, Set, Union

from caldav_service.davobject import DAVObject
from caldav_service.elements import cdav
from caldav_service.elements import cs
from caldav_service.elements import dav
from caldav_service.elements import ical
from caldav_service.elements.base import BaseElement
from caldav_service.lib import error
from caldav_service.lib.error import errmsg
from caldav_service.objects import COLLECTION_PROPS
from caldav_service.objects import Calendar
from caldav_service.objects import ComponentKind
from caldav_service.objects import ScheduleInbox
from caldav_service.objects import ScheduleOutbox
from caldav_service.objects import calendar_from_props
from caldav_service.objects import collection_id
from caldav_service.objects import component_name
from caldav_service.objects import resource_types
from caldav_service.objects import schedule_inbox_from_props
from caldav_service.objects import schedule_outbox_from_props

log = logging.getLogger("caldav_service")

## The id of the calendar holding the birthdays of the address book
## contacts on Nextcloud servers
BIRTHDAY_CALENDAR_ID = "contact_birthdays"


def slugify(text: str) -> str:
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def available_name(token: str, is_available: Callable[[str], bool]) -> str:
    """
    A collection name derived from token, with a numeric suffix appended
    if needed to make it available.
    """
    base = slugify(token) or str(uuid.uuid4())
    name = base
    i = 0
    while not is_available(name):
        i += 1
        name = "%s-%d" % (base, i)
    return name


class CalendarHome(DAVObject):
    """
    The calendar-home-set collection of a principal (rfc4791, sec. 6.2.1).
    """

    def __init__(self, client, url) -> None:
        super().__init__(client, url)
        self._children_names: Optional[Set[str]] = None

    async def _find_children(self, resource_type: str) -> List[tuple]:
        children = await self.children(COLLECTION_PROPS)
        self._children_names = {collection_id(str(url)) for url, _ in children}
        return [
            (str(url), props)
            for url, props in children
            if resource_type in resource_types(props)
        ]

    async def find_all_calendars(self) -> List[Calendar]:
        """
        All calendars and subscriptions of this home, ordered by their
        calendar-order (calendars without an order come last).
        """
        calendars = [
            calendar_from_props(url, props, str(self.url))
            for url, props in await self._find_children(dav.Collection.tag)
            if {cdav.Calendar.tag, cs.Subscribed.tag} & set(resource_types(props))
        ]
        calendars.sort(key=lambda c: (c.order is None, c.order or 0, c.url))
        return calendars

    async def find_all_schedule_inboxes(self) -> List[ScheduleInbox]:
        return [
            schedule_inbox_from_props(url, props, str(self.url))
            for url, props in await self._find_children(cdav.ScheduleInbox.tag)
        ]

    async def find_all_schedule_outboxes(self) -> List[ScheduleOutbox]:
        return [
            schedule_outbox_from_props(url, props, str(self.url))
            for url, props in await self._find_children(cdav.ScheduleOutbox.tag)
        ]

    async def find(self, cal_id: str) -> Calendar:
        """
        Fetch the calendar with the given id.

        Raises:
            error.NotFoundError: there is no calendar with that id
        """
        url = self.child_url(cal_id)
        props = await self.get_properties(COLLECTION_PROPS, url=url)
        if not {cdav.Calendar.tag, cs.Subscribed.tag} & set(resource_types(props)):
            raise error.NotFoundError(str(url), "not a calendar collection")
        return calendar_from_props(str(url), props, str(self.url))

    async def _available_name(self, display_name: str) -> str:
        if self._children_names is None:
            await self._find_children(dav.Collection.tag)
        return available_name(display_name, lambda name: name not in self._children_names)

    async def _create_collection(
        self, display_name: str, resource_type: Iterable[BaseElement], props: List[BaseElement]
    ) -> Calendar:
        """
        Create a collection with an extended MKCOL (rfc5689), then fetch
        it back so that the server-normalized properties are returned.
        """
        name = await self._available_name(display_name)
        url = self.child_url(name)

        prop = dav.Prop() + (dav.ResourceType() + [dav.Collection()] + resource_type)
        prop += [dav.DisplayName(display_name)] + props
        body = (dav.Mkcol() + (dav.Set() + prop)).tostring(
            pretty_print=error.debug_dump_communication
        )

        try:
            response = await self.client.mkcol(url, body)
        except error.AuthorizationError as err:
            raise error.CollectionCreateError(str(url), err.reason) from err
        if response.status not in (200, 201, 204):
            ## the children may have changed behind our back, list them again next time
            self._children_names = None
            raise error.CollectionCreateError(str(url), errmsg(response))
        self._children_names.add(name)
        log.info(f"created collection {url}")

        return await self.find(name)

    async def create_calendar_collection(
        self,
        display_name: str,
        color: Optional[str],
        components: Iterable[Union[str, ComponentKind]],
        order: Optional[int],
        timezone_ics: Optional[str],
    ) -> Calendar:
        sccs = cdav.SupportedCalendarComponentSet()
        for comp in components:
            sccs += cdav.Comp(component_name(comp))

        props: List[BaseElement] = [sccs]
        if color:
            props.append(ical.CalendarColor(color))
        if order is not None:
            props.append(ical.CalendarOrder(str(order)))
        if timezone_ics:
            props.append(cdav.CalendarTimeZone(timezone_ics))
        return await self._create_collection(display_name, [cdav.Calendar()], props)

    async def create_subscribed_collection(
        self,
        display_name: str,
        color: Optional[str],
        source: str,
        order: Optional[int],
    ) -> Calendar:
        props: List[BaseElement] = [cs.Source() + dav.Href(source)]
        if color:
            props.append(ical.CalendarColor(color))
        if order is not None:
            props.append(ical.CalendarOrder(str(order)))
        return await self._create_collection(display_name, [cs.Subscribed()], props)

    async def enable_birthday_calendar(self) -> None:
        """
        Ask the server to generate the birthday calendar of the address
        book contacts (a Nextcloud extension).
        """
        body = cs.EnableBirthdayCalendar().tostring()
        response = await self.client.post(self.url, body)
        if response.status >= 400:
            raise error.PostError(str(self.url), errmsg(response))


class PublicCalendarHome(DAVObject):
    """
    The collection below which publicly shared calendars are reachable
    by their token, without authentication.  Nothing is discovered when
    this object is created.
    """

    async def find(self, token: str) -> Calendar:
        """
        Fetch the public calendar identified by token.

        Raises:
            error.NotFoundError: the token is unknown, expired or revoked
        """
        url = self.child_url(token)
        props = await self.get_properties(COLLECTION_PROPS, url=url)
        if cdav.Calendar.tag not in resource_types(props):
            raise error.NotFoundError(str(url), "not a calendar collection")
        return calendar_from_props(str(url), props, str(self.url))
