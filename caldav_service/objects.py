#!/usr/bin/env python
"""
The resources discovered on the server, as plain data.

Each resource kind has a fixed set of fields and is tagged with a
:class:`ResourceKind`.  The ``*_from_props`` functions are the adapters
turning the raw ``{proptag: element}`` dicts of a PROPFIND response into
those entities; nothing above this module sees XML.
"""
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Any
from typing import Dict
from typing import FrozenSet
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union

from lxml.etree import _Element

from caldav_service.elements import cdav
from caldav_service.elements import cs
from caldav_service.elements import dav
from caldav_service.elements import ical
from caldav_service.lib import error
from caldav_service.lib.url import URL


class ResourceKind(Enum):
    CALENDAR = "calendar"
    SUBSCRIPTION = "subscription"
    SCHEDULE_INBOX = "schedule-inbox"
    SCHEDULE_OUTBOX = "schedule-outbox"
    PRINCIPAL = "principal"


class ComponentKind(str, Enum):
    """Calendar components a calendar collection may support (rfc4791, sec. 5.2.3)"""

    VEVENT = "VEVENT"
    VTODO = "VTODO"
    VJOURNAL = "VJOURNAL"
    VFREEBUSY = "VFREEBUSY"
    VAVAILABILITY = "VAVAILABILITY"


@dataclass(frozen=True)
class Calendar:
    """
    A calendar collection below a calendar home.

    For subscriptions (``kind == ResourceKind.SUBSCRIPTION``) this is a
    locally cached copy of a remote feed at ``source_url``.  The server
    re-fetches the feed periodically; there are no push updates.
    """

    url: str
    id: str
    home_url: Optional[str] = None
    display_name: Optional[str] = None
    color: Optional[str] = None
    order: Optional[int] = None
    components: FrozenSet[str] = frozenset()
    timezone: Optional[str] = None
    source_url: Optional[str] = None
    ctag: Optional[str] = None
    sync_token: Optional[str] = None
    kind: ResourceKind = ResourceKind.CALENDAR

    @property
    def is_subscription(self) -> bool:
        return self.kind is ResourceKind.SUBSCRIPTION

    def supports(self, component: str) -> bool:
        return component_name(component) in self.components


@dataclass(frozen=True)
class ScheduleInbox:
    url: str
    home_url: Optional[str] = None
    display_name: Optional[str] = None
    ctag: Optional[str] = None
    kind: ResourceKind = field(default=ResourceKind.SCHEDULE_INBOX, init=False)


@dataclass(frozen=True)
class ScheduleOutbox:
    url: str
    home_url: Optional[str] = None
    display_name: Optional[str] = None
    kind: ResourceKind = field(default=ResourceKind.SCHEDULE_OUTBOX, init=False)


@dataclass(frozen=True)
class Principal:
    """
    A directory entry (user, group, resource or room) on the server.

    Attributes:
        url: Principal URL
        display_name: Display name of the principal
        calendar_user_addresses: Calendar user addresses, preferred first
        calendar_user_type: INDIVIDUAL, GROUP, RESOURCE, ROOM or UNKNOWN
        calendar_home_urls: URLs of the calendar homes
        schedule_inbox_url: The CALDAV:schedule-inbox-URL property
        schedule_outbox_url: The CALDAV:schedule-outbox-URL property
    """

    url: str
    display_name: Optional[str] = None
    calendar_user_addresses: Tuple[str, ...] = ()
    calendar_user_type: Optional[str] = None
    calendar_home_urls: Tuple[str, ...] = ()
    schedule_inbox_url: Optional[str] = None
    schedule_outbox_url: Optional[str] = None
    kind: ResourceKind = field(default=ResourceKind.PRINCIPAL, init=False)

    @property
    def email(self) -> Optional[str]:
        for address in self.calendar_user_addresses:
            if address.lower().startswith("mailto:"):
                return address[len("mailto:") :]
        return None

    def vcal_address(self) -> Any:
        """
        Returns the principal as an icalendar.vCalAddress object,
        suitable as ATTENDEE or ORGANIZER of an iTIP message.
        """
        from icalendar import vCalAddress, vText

        if not self.calendar_user_addresses:
            raise error.NotFoundError(
                self.url, "No calendar user addresses given from server"
            )
        ret = vCalAddress(self.calendar_user_addresses[0])
        if self.display_name:
            ret.params["cn"] = vText(self.display_name)
        if self.calendar_user_type:
            ret.params["cutype"] = vText(self.calendar_user_type)
        return ret


def component_name(component: Union[str, ComponentKind]) -> str:
    """
    The canonical name of a calendar component, i.e. "VEVENT".

    Raises:
        ValueError: not a known calendar component
    """
    if isinstance(component, ComponentKind):
        return component.value
    return ComponentKind(component.strip().upper()).value


## Properties asked for when listing or fetching collections
COLLECTION_PROPS = [
    dav.ResourceType(),
    dav.DisplayName(),
    ical.CalendarColor(),
    ical.CalendarOrder(),
    cdav.SupportedCalendarComponentSet(),
    cdav.CalendarTimeZone(),
    cs.Source(),
    cs.GetCTag(),
    dav.SyncToken(),
]

PRINCIPAL_PROPS = [
    dav.ResourceType(),
    dav.DisplayName(),
    cdav.CalendarUserAddressSet(),
    cdav.CalendarUserType(),
    cdav.CalendarHomeSet(),
    cdav.ScheduleInboxURL(),
    cdav.ScheduleOutboxURL(),
]


def _text(props: Dict[str, _Element], tag: str) -> Optional[str]:
    elem = props.get(tag)
    if elem is None or not elem.text:
        return None
    return elem.text.strip()


def _hrefs(props: Dict[str, _Element], tag: str) -> List[_Element]:
    elem = props.get(tag)
    if elem is None:
        return []
    return list(elem.iterfind(dav.Href.tag))


def _href(props: Dict[str, _Element], tag: str) -> Optional[str]:
    hrefs = _hrefs(props, tag)
    if not hrefs:
        return None
    error.assert_(len(hrefs) == 1)
    return hrefs[0].text


def resource_types(props: Dict[str, _Element]) -> List[str]:
    elem = props.get(dav.ResourceType.tag)
    if elem is None:
        return []
    return [child.tag for child in elem]


def collection_id(url: str) -> str:
    """The last path segment of a collection URL, i.e. the calendar id"""
    return URL.objectify(url).strip_trailing_slash().path.split("/")[-1]


def calendar_from_props(
    url: str, props: Dict[str, _Element], home_url: Optional[str] = None
) -> Calendar:
    types = resource_types(props)
    if cs.Subscribed.tag in types:
        kind = ResourceKind.SUBSCRIPTION
    else:
        error.assert_(cdav.Calendar.tag in types)
        kind = ResourceKind.CALENDAR

    order = _text(props, ical.CalendarOrder.tag)
    try:
        order_value = int(order) if order is not None else None
    except ValueError:
        error.weirdness(f"calendar-order {order} for {url} is not an integer")
        order_value = None

    components = frozenset()
    sccs = props.get(cdav.SupportedCalendarComponentSet.tag)
    if sccs is not None:
        components = frozenset(
            comp.get("name").upper()
            for comp in sccs.iterfind(cdav.Comp.tag)
            if comp.get("name")
        )

    return Calendar(
        url=url,
        id=collection_id(url),
        home_url=home_url,
        display_name=_text(props, dav.DisplayName.tag),
        color=_text(props, ical.CalendarColor.tag),
        order=order_value,
        components=components,
        timezone=_text(props, cdav.CalendarTimeZone.tag),
        source_url=_href(props, cs.Source.tag),
        ctag=_text(props, cs.GetCTag.tag),
        sync_token=_text(props, dav.SyncToken.tag),
        kind=kind,
    )


def schedule_inbox_from_props(
    url: str, props: Dict[str, _Element], home_url: Optional[str] = None
) -> ScheduleInbox:
    return ScheduleInbox(
        url=url,
        home_url=home_url,
        display_name=_text(props, dav.DisplayName.tag),
        ctag=_text(props, cs.GetCTag.tag),
    )


def schedule_outbox_from_props(
    url: str, props: Dict[str, _Element], home_url: Optional[str] = None
) -> ScheduleOutbox:
    return ScheduleOutbox(
        url=url,
        home_url=home_url,
        display_name=_text(props, dav.DisplayName.tag),
    )


def principal_from_props(url: str, props: Dict[str, _Element]) -> Principal:
    ## The 'preferred' attribute is possibly iCloud-specific, but we
    ## honor it when present
    addresses = sorted(
        _hrefs(props, cdav.CalendarUserAddressSet.tag),
        key=lambda x: -int(x.get("preferred", 0)),
    )
    user_type = props.get(cdav.CalendarUserType.tag)
    return Principal(
        url=url,
        display_name=_text(props, dav.DisplayName.tag),
        calendar_user_addresses=tuple(x.text for x in addresses if x.text),
        calendar_user_type=user_type.text if user_type is not None else None,
        calendar_home_urls=tuple(
            x.text for x in _hrefs(props, cdav.CalendarHomeSet.tag) if x.text
        ),
        schedule_inbox_url=_href(props, cdav.ScheduleInboxURL.tag),
        schedule_outbox_url=_href(props, cdav.ScheduleOutboxURL.tag),
    )
