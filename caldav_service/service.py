#!/usr/bin/env python
"""
The operations the calendar application uses to find and create
calendars and to look up principals.

Every operation obtains the session from the ConnectionManager it was
constructed with.  Nothing is retried; errors from the transport
propagate unchanged, except for the public tokens that cannot be
resolved, which are left out of the result.
"""
import asyncio
import logging
from typing import Iterable, List, Optional, Union

import icalendar

from caldav_service.collection import BIRTHDAY_CALENDAR_ID
from caldav_service.connection import ConnectionManager
from caldav_service.lib import error
from caldav_service.lib.url import URL
from caldav_service.objects import Calendar
from caldav_service.objects import ComponentKind
from caldav_service.objects import Principal
from caldav_service.objects import ScheduleInbox
from caldav_service.objects import ScheduleOutbox
from caldav_service.session import SessionMode

log = logging.getLogger("caldav_service")


def validate_timezone(timezone_ics: str) -> str:
    """
    Check that timezone_ics is a VCALENDAR holding a VTIMEZONE, as the
    calendar-timezone property requires (rfc4791, sec. 5.2.2).

    Raises:
        ValueError: it is not
    """
    try:
        cal = icalendar.Calendar.from_ical(timezone_ics)
    except ValueError as err:
        raise ValueError(f"timezone is not valid iCalendar data: {err}") from err
    if not cal.walk("VTIMEZONE"):
        raise ValueError("timezone contains no VTIMEZONE component")
    return timezone_ics


class ResourceDiscovery:
    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager

    async def find_all_calendars(self) -> List[Calendar]:
        """
        All calendars (and subscriptions) in the first calendar home,
        in the order given by their calendar-order property.
        """
        return await self.manager.get_session().calendar_home.find_all_calendars()

    async def find_public_calendars_by_tokens(self, tokens: Iterable[str]) -> List[Calendar]:
        """
        Resolve each token to the publicly shared calendar, all at once.

        Tokens the server rejects (expired, revoked, unknown) are left
        out of the result, so one stale token never hides the others.
        The result follows the sorted order of the tokens.
        """
        session = self.manager.get_session()
        if session.mode is not SessionMode.PUBLIC or session.public_calendar_home is None:
            raise error.SessionModeError(
                str(session.client.url), "public calendars need a session initialized for the public view"
            )
        home = session.public_calendar_home
        tokens = sorted(set(tokens))
        results = await asyncio.gather(
            *[home.find(token) for token in tokens], return_exceptions=True
        )

        calendars = []
        for token, result in zip(tokens, results):
            ## not a lookup failure, e.g. cancellation
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception):
                log.info(f"could not resolve public calendar token {token}: {result}")
                continue
            calendars.append(result)
        return calendars

    async def find_scheduling_inbox(self) -> Optional[ScheduleInbox]:
        """
        The scheduling inbox of the current user, or None.

        Strictly, rfc6638 (sec. 2.2.1) says to use the schedule-inbox-URL
        property of the principal; taking the first inbox of the
        calendar home gives the same answer on the servers we know of.
        """
        inboxes = await self.manager.get_session().calendar_home.find_all_schedule_inboxes()
        return inboxes[0] if inboxes else None

    async def find_scheduling_outbox(self) -> Optional[ScheduleOutbox]:
        """
        The scheduling outbox of the current user, or None.

        See find_scheduling_inbox, and rfc6638, sec. 2.1.1.
        """
        outboxes = await self.manager.get_session().calendar_home.find_all_schedule_outboxes()
        return outboxes[0] if outboxes else None

    async def get_birthday_calendar(self) -> Optional[Calendar]:
        """The birthday calendar, or None if it was never enabled"""
        try:
            return await self.manager.get_session().calendar_home.find(BIRTHDAY_CALENDAR_ID)
        except error.NotFoundError:
            return None


class CollectionFactory:
    def __init__(self, manager: ConnectionManager, discovery: ResourceDiscovery) -> None:
        self.manager = manager
        self.discovery = discovery

    async def create_calendar(
        self,
        display_name: str,
        color: Optional[str],
        components: Iterable[Union[str, ComponentKind]],
        order: Optional[int],
        timezone_ics: Optional[str],
    ) -> Calendar:
        """
        Create a calendar in the first calendar home.  The returned
        calendar holds the properties as confirmed by the server.

        Raises:
            error.CollectionCreateError: the server refused to create it
            ValueError: timezone_ics or one of the components is invalid
        """
        if timezone_ics:
            validate_timezone(timezone_ics)
        home = self.manager.get_session().calendar_home
        return await home.create_calendar_collection(
            display_name, color, list(components), order, timezone_ics
        )

    async def create_subscription(
        self,
        display_name: str,
        color: Optional[str],
        source_url: Union[str, URL],
        order: Optional[int],
    ) -> Calendar:
        """
        Subscribe to the calendar feed (webcal) at source_url.

        This does not return a live subscription, but the calendar the
        server caches the feed in.  The server re-fetches the feed
        periodically; there are no push updates.

        Raises:
            error.CollectionCreateError: the server refused to create it
        """
        home = self.manager.get_session().calendar_home
        return await home.create_subscribed_collection(
            display_name, color, str(source_url), order
        )

    async def enable_birthday_calendar(self) -> Calendar:
        """
        Enable the birthday calendar and return it.  Enabling an already
        enabled birthday calendar returns the existing one.
        """
        home = self.manager.get_session().calendar_home
        try:
            await home.enable_birthday_calendar()
        except error.PostError:
            existing = await self.discovery.get_birthday_calendar()
            if existing is None:
                raise
            log.debug("birthday calendar was enabled already")
            return existing

        calendar = await self.discovery.get_birthday_calendar()
        if calendar is None:
            raise error.NotFoundError(
                str(home.child_url(BIRTHDAY_CALENDAR_ID)),
                "birthday calendar not found after enabling it",
            )
        return calendar


class PrincipalLookup:
    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager

    def get_current_user_principal(self) -> Principal:
        """
        Raises:
            error.NotAuthenticatedError: the session is not initialized
              for the user view
        """
        session = self.manager.get_session()
        if session.mode is not SessionMode.USER or session.current_user_principal is None:
            raise error.NotAuthenticatedError(str(session.client.url))
        return session.current_user_principal

    async def find_principals_by_display_name(self, query: str) -> List[Principal]:
        """
        Search principals by display name.  An empty query finds nothing,
        without asking the server.
        """
        if not query or not query.strip():
            return []
        return await self.manager.get_session().principal_property_search_by_displayname(query)

    async def find_principal_by_url(self, url: Union[str, URL]) -> Principal:
        """
        Raises:
            error.PrincipalNotFoundError: url is not a principal resource
        """
        return await self.manager.get_session().find_principal(url)


class CalDAVService:
    """
    The calendar operations of the application, in one place.

    The manager must be initialized (for the user view or the public
    view) before any other method is used.
    """

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager
        self.discovery = ResourceDiscovery(manager)
        self.factory = CollectionFactory(manager, self.discovery)
        self.principals = PrincipalLookup(manager)

    async def initialize_client_for_user_view(self) -> None:
        await self.manager.initialize_for_user_view()

    async def initialize_client_for_public_view(self) -> None:
        await self.manager.initialize_for_public_view()

    async def find_all_calendars(self) -> List[Calendar]:
        return await self.discovery.find_all_calendars()

    async def find_public_calendars_by_tokens(self, tokens: Iterable[str]) -> List[Calendar]:
        return await self.discovery.find_public_calendars_by_tokens(tokens)

    async def find_scheduling_inbox(self) -> Optional[ScheduleInbox]:
        return await self.discovery.find_scheduling_inbox()

    async def find_scheduling_outbox(self) -> Optional[ScheduleOutbox]:
        return await self.discovery.find_scheduling_outbox()

    async def create_calendar(
        self,
        display_name: str,
        color: Optional[str],
        components: Iterable[Union[str, ComponentKind]],
        order: Optional[int],
        timezone_ics: Optional[str],
    ) -> Calendar:
        return await self.factory.create_calendar(
            display_name, color, components, order, timezone_ics
        )

    async def create_subscription(
        self,
        display_name: str,
        color: Optional[str],
        source_url: Union[str, URL],
        order: Optional[int],
    ) -> Calendar:
        return await self.factory.create_subscription(display_name, color, source_url, order)

    async def enable_birthday_calendar(self) -> Calendar:
        return await self.factory.enable_birthday_calendar()

    async def get_birthday_calendar(self) -> Optional[Calendar]:
        return await self.discovery.get_birthday_calendar()

    def get_current_user_principal(self) -> Principal:
        return self.principals.get_current_user_principal()

    async def find_principals_by_display_name(self, query: str) -> List[Principal]:
        return await self.principals.find_principals_by_display_name(query)

    async def find_principal_by_url(self, url: Union[str, URL]) -> Principal:
        return await self.principals.find_principal_by_url(url)
