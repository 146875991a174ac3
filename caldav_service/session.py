#!/usr/bin/env python
"""
The session: one client connection to the DAV server, bootstrapped
either for the user view (authenticated, with principal and calendar
homes discovered) or for the public view (anonymous, shared calendars
reachable by token).
"""
import logging
from enum import Enum
from typing import List, Optional, Union
from urllib.parse import quote

from caldav_service.collection import CalendarHome
from caldav_service.collection import PublicCalendarHome
from caldav_service.davclient import AsyncDAVClient
from caldav_service.davobject import DAVObject
from caldav_service.elements import dav
from caldav_service.lib import error
from caldav_service.lib.error import errmsg
from caldav_service.lib.url import URL
from caldav_service.objects import PRINCIPAL_PROPS
from caldav_service.objects import Principal
from caldav_service.objects import principal_from_props
from caldav_service.objects import resource_types

log = logging.getLogger("caldav_service")

## Where Nextcloud/SabreDAV serves calendars shared by public link
PUBLIC_CALENDARS_PATH = "public-calendars/"


class SessionMode(Enum):
    USER = "user"
    PUBLIC = "public"


class Session:
    """
    A connection to the DAV server.  The mode is None until connect()
    or create_public_calendar_home() has succeeded, and does not change
    afterwards.
    """

    def __init__(self, client: AsyncDAVClient) -> None:
        self.client = client
        self.mode: Optional[SessionMode] = None
        self.calendar_homes: List[CalendarHome] = []
        self.public_calendar_home: Optional[PublicCalendarHome] = None
        self.current_user_principal: Optional[Principal] = None
        self.principal_collections: List[URL] = []
        self._root = DAVObject(client, client.url)

    def __repr__(self) -> str:
        mode = self.mode.value if self.mode else "unconnected"
        return "Session(%s, %s)" % (self.client.url, mode)

    @property
    def calendar_home(self) -> CalendarHome:
        """The first calendar home of the current user"""
        if self.mode is not SessionMode.USER or not self.calendar_homes:
            raise error.NotAuthenticatedError(str(self.client.url))
        return self.calendar_homes[0]

    def _check_mode(self, mode: SessionMode) -> None:
        if self.mode is not None and self.mode is not mode:
            raise error.SessionModeError(
                str(self.client.url),
                f"session is connected for the {self.mode.value} view, not the {mode.value} view",
            )

    async def connect(self, enable_caldav: bool = True) -> None:
        """
        Bootstrap the session for the user view: find the current user
        principal, its properties and (with enable_caldav) its calendar
        homes.

        Raises:
            error.ConnectionError: the server could not be reached or
              did not deliver what is needed to use it
        """
        self._check_mode(SessionMode.USER)
        try:
            props = await self._root.get_properties(
                [dav.CurrentUserPrincipal(), dav.PrincipalCollectionSet()]
            )
            cup = props.get(dav.CurrentUserPrincipal.tag)
            cup_href = cup.find(dav.Href.tag) if cup is not None else None
            if cup_href is None or not cup_href.text:
                raise error.ConnectionError(
                    str(self.client.url),
                    "current-user-principal not found, is the session authenticated?",
                )
            pcs = props.get(dav.PrincipalCollectionSet.tag)
            principal_collections = [
                self.client.url.join(href.text)
                for href in (pcs.iterfind(dav.Href.tag) if pcs is not None else [])
                if href.text
            ]

            principal = await self.find_principal(cup_href.text)
            calendar_homes = []
            if enable_caldav:
                if not principal.calendar_home_urls:
                    raise error.ConnectionError(
                        principal.url, "no calendar-home-set found for the current user"
                    )
                calendar_homes = [
                    CalendarHome(self.client, url) for url in principal.calendar_home_urls
                ]
        except error.ConnectionError:
            raise
        except error.DAVError as err:
            raise error.ConnectionError(err.url or str(self.client.url), str(err)) from err

        self.principal_collections = principal_collections or [self.client.url.join("principals/")]
        self.current_user_principal = principal
        self.calendar_homes = calendar_homes
        self.mode = SessionMode.USER
        log.info(
            f"connected to {self.client.url} as {principal.url}, "
            f"calendar homes: {[str(h.url) for h in calendar_homes]}"
        )

    async def create_public_calendar_home(self) -> None:
        """
        Bootstrap the session for the public view.  No request is sent,
        and there is no principal to discover.
        """
        self._check_mode(SessionMode.PUBLIC)
        self.public_calendar_home = PublicCalendarHome(
            self.client, self.client.url.join(PUBLIC_CALENDARS_PATH)
        )
        self.mode = SessionMode.PUBLIC

    async def find_principal(self, url: Union[str, URL]) -> Principal:
        """
        Fetch the principal at url.

        Raises:
            error.PrincipalNotFoundError: url is not a principal resource
        """
        try:
            url = self.client.url.join(url)
        except ValueError as err:
            ## on another server
            raise error.PrincipalNotFoundError(str(url), str(err)) from err
        try:
            props = await self._root.get_properties(PRINCIPAL_PROPS, url=url)
        except error.NotFoundError as err:
            raise error.PrincipalNotFoundError(str(url), err.reason) from err
        if dav.Principal.tag not in resource_types(props):
            raise error.PrincipalNotFoundError(str(url), "not a principal resource")
        return principal_from_props(str(url), props)

    async def principal_property_search_by_displayname(self, query: str) -> List[Principal]:
        """
        Search the principal collections for principals with a matching
        display name (rfc3744, sec. 9.4).  How the server matches is up
        to the server.
        """
        if self.mode is not SessionMode.USER:
            raise error.NotAuthenticatedError(str(self.client.url))

        search = dav.PropertySearch() + [dav.Prop() + dav.DisplayName(), dav.Match(query)]
        root = dav.PrincipalPropertySearch() + [
            search,
            dav.Prop() + PRINCIPAL_PROPS,
            dav.ApplyToPrincipalCollectionSet(),
        ]
        url = self.principal_collections[0]
        response = await self.client.report(
            url, root.tostring(pretty_print=error.debug_dump_communication), 0
        )
        if response.status >= 400:
            raise error.ReportError(str(url), errmsg(response))

        principals = []
        for href, props in response.find_objects_and_props().items():
            if dav.Principal.tag not in resource_types(props):
                log.debug(f"ignoring non-principal {href} in principal search result")
                continue
            principals.append(
                principal_from_props(str(self.client.url.join(quote(href))), props)
            )
        return principals
