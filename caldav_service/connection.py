#!/usr/bin/env python
"""
The ConnectionManager owns the one session of the application.

It is constructed once, when the application starts, and handed to
everything that needs to talk to the server:

    manager = ConnectionManager("https://cloud.example.com/remote.php/dav/",
                                request_token=get_request_token)
    await manager.initialize_for_user_view()
    service = CalDAVService(manager)
    calendars = await service.find_all_calendars()
"""
import asyncio
import logging
import sys
from types import TracebackType
from typing import Any, Callable, Dict, Optional, Union

from caldav_service.davclient import AsyncDAVClient
from caldav_service.davclient import HeaderProvider
from caldav_service.lib import error
from caldav_service.session import Session
from caldav_service.session import SessionMode

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

log = logging.getLogger("caldav_service")

RequestToken = Union[str, Callable[[], Optional[str]], None]


def make_header_provider(
    request_token: RequestToken = None, webcal_caching: bool = True
) -> HeaderProvider:
    """
    The headers sent with every request.  The request token (the CSRF
    token of the web session) may be given as a callable, which is then
    asked again for every request.
    """

    def header_provider() -> Dict[str, str]:
        headers = {
            "X-Requested-With": "XMLHttpRequest",
            "X-NC-CalDAV-Webcal-Caching": "On" if webcal_caching else "Off",
        }
        token = request_token() if callable(request_token) else request_token
        if token:
            headers["requesttoken"] = token
        return headers

    return header_provider


class ConnectionManager:
    """
    Creates the session on first use and bootstraps it, exactly once,
    for either the user view or the public view.

    Calling initialize_for_user_view() and initialize_for_public_view()
    on the same manager is refused with error.SessionModeError.  A
    repeated call for the same view waits for (or returns after) the
    one bootstrap.  A failed bootstrap is not retried here, but the
    next call for the same view will try again.
    """

    def __init__(
        self,
        url: str,
        request_token: RequestToken = None,
        webcal_caching: bool = True,
        header_provider: Optional[HeaderProvider] = None,
        **client_kwargs: Any,
    ) -> None:
        """
        Args:
            url: The DAV root, i.e. https://cloud.example.com/remote.php/dav/
            request_token: CSRF token, or a callable returning it
            webcal_caching: Ask the server to cache subscriptions (webcal)
            header_provider: Replaces the default header provider
            client_kwargs: Passed on to AsyncDAVClient (username, password, timeout, ...)
        """
        self.url = url
        self.header_provider = header_provider or make_header_provider(
            request_token, webcal_caching
        )
        self.client_kwargs = client_kwargs
        self._session: Optional[Session] = None
        self._bootstrap: Optional["asyncio.Future[None]"] = None
        self._bootstrap_mode: Optional[SessionMode] = None

    @classmethod
    def from_config(
        cls, config_file: Optional[str] = None, section: str = "default", **overrides: Any
    ) -> "ConnectionManager":
        """
        Build a manager from the configuration file, the environment
        and the given overrides, see caldav_service.config
        """
        from caldav_service.config import get_connection_params

        params = get_connection_params(config_file, section, **overrides)
        if not params.get("url"):
            raise ValueError(
                "URL is required. Provide it in the config file, via the url parameter or the CALDAV_SERVICE_URL environment variable."
            )
        return cls(**params)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session.  Meant for application shutdown."""
        if self._session is not None:
            await self._session.client.close()

    @property
    def mode(self) -> Optional[SessionMode]:
        return self._bootstrap_mode

    def get_session(self) -> Session:
        """
        The session, created on the first call.  Creating it sends
        nothing to the server, so every caller gets the same instance.
        """
        if self._session is None:
            client = AsyncDAVClient(
                url=self.url, header_provider=self.header_provider, **self.client_kwargs
            )
            self._session = Session(client)
            log.debug(f"created session for {self.url}")
        return self._session

    async def initialize_for_user_view(self) -> None:
        """
        Connect in authenticated mode, discovering the current user
        principal and its calendar homes.

        Raises:
            error.ConnectionError: the server is unreachable or the
              bootstrap failed
            error.SessionModeError: already initialized for the public view
        """
        await self._initialize(SessionMode.USER)

    async def initialize_for_public_view(self) -> None:
        """
        Connect in public mode, without authentication and without
        principal discovery.

        Raises:
            error.SessionModeError: already initialized for the user view
        """
        await self._initialize(SessionMode.PUBLIC)

    async def _initialize(self, mode: SessionMode) -> None:
        if self._bootstrap_mode is not None and self._bootstrap_mode is not mode:
            raise error.SessionModeError(
                self.url,
                f"session is initialized for the {self._bootstrap_mode.value} view, "
                f"refusing to initialize it for the {mode.value} view",
            )
        if self._bootstrap is None:
            ## published before the first await, so that concurrent
            ## callers join this bootstrap instead of starting another
            self._bootstrap_mode = mode
            self._bootstrap = asyncio.ensure_future(self._run_bootstrap(mode))
        await asyncio.shield(self._bootstrap)

    async def _run_bootstrap(self, mode: SessionMode) -> None:
        session = self.get_session()
        try:
            if mode is SessionMode.USER:
                await session.connect(enable_caldav=True)
            else:
                await session.create_public_calendar_home()
        except BaseException:
            log.warning(f"bootstrapping the {mode.value} view of {self.url} failed")
            self._bootstrap = None
            self._bootstrap_mode = None
            raise
