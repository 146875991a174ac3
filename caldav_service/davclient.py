#!/usr/bin/env python
"""
Async WebDAV/CalDAV transport.

AsyncDAVClient sends the requests, DAVResponse turns the multistatus
replies into ``{path: {proptag: element}}`` dicts.  Everything above
this module (sessions, calendar homes, principals) only uses the verb
wrappers of the client.
"""
import logging
import sys
from collections.abc import Mapping
from types import TracebackType
from typing import Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import unquote

from lxml import etree
from lxml.etree import _Element
from niquests import AsyncSession
from niquests.auth import AuthBase
from niquests.auth import HTTPBasicAuth
from niquests.exceptions import RequestException
from niquests.models import Response

from caldav_service import __version__
from caldav_service.elements import dav
from caldav_service.lib import error
from caldav_service.lib.debug import xmlstring
from caldav_service.lib.python_utilities import to_normal_str, to_wire
from caldav_service.lib.url import URL

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

log = logging.getLogger("caldav_service")

HeaderProvider = Callable[[], Mapping[str, str]]

XML_CONTENT_TYPES = ("text/xml", "application/xml")
NON_XML_CONTENT_TYPES = (
    "text/plain",
    "text/calendar",
    "text/html",
    "application/octet-stream",
)
## status codes accepted inside a multistatus
MULTISTATUS_OK = ("200", "201", "207", "404")


class DAVResponse:
    """
    A reply from the DAV server.

    ``tree`` holds the parsed XML body, or None if the server sent
    something else (nothing at all, iCalendar data, an HTML error page).
    """

    tree: Optional[_Element] = None

    def __init__(self, response: Response, huge_tree: bool = False) -> None:
        self.status: int = response.status_code
        self.reason: str = getattr(response, "reason", "") or ""
        self.headers = response.headers
        self.objects: Optional[Dict[str, Dict[str, _Element]]] = None
        self._raw = response.content or b""
        log.debug(f"response {self.status} {self.reason}, headers: {self.headers}")

        content_type = self.headers.get("Content-Type", "")
        is_xml = content_type.startswith(XML_CONTENT_TYPES)
        is_other = content_type.startswith(NON_XML_CONTENT_TYPES)
        if content_type and not (is_xml or is_other) and self.status < 400:
            error.weirdness(f"unexpected content type {content_type}")
        if not self._raw or is_other:
            return

        parser = etree.XMLParser(remove_blank_text=True, huge_tree=huge_tree)
        try:
            self.tree = etree.XML(self._raw, parser=parser)
        except etree.XMLSyntaxError as err:
            log.info(f"response body is not well-formed XML:\n{self.raw}", exc_info=True)
            ## error pages are allowed to be garbage
            if is_xml and self.status < 400:
                raise error.ResponseError(
                    reason=f"{self.status} {self.reason}, body is not well-formed XML: {err}"
                ) from err
        else:
            if log.isEnabledFor(logging.DEBUG):
                log.debug(xmlstring(self.tree))

    @property
    def raw(self) -> str:
        return to_normal_str(self._raw)

    def _responses(self) -> List[_Element]:
        """
        The children of the multistatus element.  A body holding a
        single response element (no multistatus around it) counts as a
        multistatus of one.
        """
        if self.tree is None:
            return []
        if self.tree.tag == dav.MultiStatus.tag:
            return list(self.tree)
        return [self.tree]

    @staticmethod
    def check_status(status: str) -> None:
        """
        status is a status line like "HTTP/1.1 404 Not Found".

        Raises:
            error.ResponseError: the code is not 200, 201, 207 or 404
        """
        parts = status.split()
        if len(parts) < 2 or parts[1] not in MULTISTATUS_OK:
            raise error.ResponseError(reason=status)

    def _href_and_propstats(self, response: _Element) -> Tuple[str, List[_Element]]:
        href: Optional[str] = None
        propstats: List[_Element] = []
        for elem in response:
            if elem.tag == dav.Href.tag:
                error.assert_(href is None)
                href = unquote(elem.text or "")
            elif elem.tag == dav.PropStat.tag:
                propstats.append(elem)
            elif elem.tag == dav.Status.tag:
                self.check_status(elem.text or "")
            else:
                error.weirdness("unexpected element in response", elem)
        error.assert_(href)
        ## full URLs are turned into paths, like the other hrefs
        if href and "://" in href:
            href = unquote(URL(href).path)
        return href or "", propstats

    def find_objects_and_props(self) -> Dict[str, Dict[str, _Element]]:
        """
        The properties found, per href: ``{path: {proptag: element}}``.

        Properties the server reports as 404 (not set) or 403 (not
        readable) are left out.  Decoding the elements is up to the
        caller.

        Raises:
            error.ResponseError: some propstat has an unexpected status
        """
        objects: Dict[str, Dict[str, _Element]] = {}
        for response in self._responses():
            if response.tag == dav.SyncToken.tag:
                continue
            if response.tag != dav.Response.tag:
                error.weirdness("unexpected element in multistatus", response)
                continue
            href, propstats = self._href_and_propstats(response)
            found = objects.setdefault(href, {})
            for propstat in propstats:
                status = propstat.findtext(dav.Status.tag)
                error.assert_(status)
                if status and (" 404 " in status or " 403 " in status):
                    continue
                if status:
                    self.check_status(status)
                for prop in propstat.iterfind(dav.Prop.tag):
                    found.update((elem.tag, elem) for elem in prop)
        self.objects = objects
        return objects


class AsyncDAVClient:
    """
    Async client for one DAV server, on top of a niquests AsyncSession.

    Every request carries the static headers given at construction time,
    overlaid with whatever the ``header_provider`` callback returns.  The
    callback is invoked once per outgoing request, so it may deliver
    values that change over the lifetime of the client (like a rotating
    CSRF token).
    """

    url: URL = None
    huge_tree: bool = False

    def __init__(
        self,
        url: str,
        header_provider: Optional[HeaderProvider] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        auth: Optional[AuthBase] = None,
        auth_type: Optional[str] = None,
        timeout: Optional[int] = None,
        ssl_verify_cert: Union[bool, str] = True,
        headers: Optional[Mapping[str, str]] = None,
        huge_tree: bool = False,
    ) -> None:
        """
        Args:
            url: The DAV root, i.e. https://cloud.example.com/remote.php/dav/.
              Credentials in the URL are used unless username/password are given.
            header_provider: Called for every request, returns extra headers.
            username, password: Credentials for basic auth (or the token, for bearer).
            auth: A ready niquests auth object, wins over the credentials.
            auth_type: 'basic' (default when a username is given) or 'bearer'.
            timeout: Seconds to wait for the server.
            ssl_verify_cert: False, or the path of a CA bundle, to deviate
              from the default verification.
            headers: Static headers sent with every request.
            huge_tree: Let lxml parse very large responses.
        """
        self.session = AsyncSession()
        self.url = URL.objectify(url)
        self.header_provider = header_provider
        self.huge_tree = huge_tree

        ## explicit empty strings are kept
        self.username = username if username is not None else self.url.username
        self.password = password if password is not None else self.url.password
        if self.url.username:
            self.url = self.url.unauth()

        self.auth = auth
        self.auth_type = auth_type
        if not self.auth and (self.auth_type or self.username):
            self.build_auth_object()

        self.timeout = timeout
        self.ssl_verify_cert = ssl_verify_cert

        self.headers: Dict[str, str] = {
            "User-Agent": f"caldav-service/{__version__}",
            "Content-Type": 'application/xml; charset="utf-8"',
            "Accept": "text/xml, application/xml",
        }
        self.headers.update(headers or {})

    def __repr__(self) -> str:
        return "AsyncDAVClient(%s)" % self.url

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
        await self.session.close()

    def build_auth_object(self) -> None:
        auth_type = self.auth_type or "basic"
        if auth_type == "bearer":
            self.auth = HTTPBearerAuth(self.password)
        elif auth_type == "basic":
            self.auth = HTTPBasicAuth(self.username, self.password)
        else:
            raise error.AuthorizationError(reason=f"Unsupported auth type: {auth_type}")

    def build_headers(self, headers: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """
        Static headers, overlaid with the headers of the header provider
        and finally the headers given for this particular request
        """
        ret = dict(self.headers)
        if self.header_provider is not None:
            ret.update(self.header_provider())
        ret.update(headers or {})
        return ret

    async def request(
        self,
        url: Union[str, URL],
        method: str = "GET",
        body: Union[str, bytes] = "",
        headers: Optional[Mapping[str, str]] = None,
    ) -> DAVResponse:
        """
        Send one request.  Error statuses are returned to the caller,
        except for those meaning the credentials were not accepted.

        Raises:
            error.ConnectionError: the server could not be reached
            error.AuthorizationError: the server answered 401 or 403
            error.ResponseError: a success reply with a broken XML body
        """
        url = self.url.join(url)
        request_headers = self.build_headers(headers)
        if not body:
            request_headers.pop("Content-Type", None)

        log.debug(
            f"sending {method} {url}, headers: {request_headers}\n{to_normal_str(body)}"
        )
        try:
            r = await self.session.request(
                method,
                str(url),
                data=to_wire(body),
                headers=request_headers,
                auth=self.auth,
                timeout=self.timeout,
                verify=self.ssl_verify_cert,
            )
        except RequestException as err:
            raise error.ConnectionError(str(url), str(err)) from err
        try:
            response = DAVResponse(r, huge_tree=self.huge_tree)
        except error.ResponseError as err:
            err.url = str(url)
            raise

        if response.status in (401, 403):
            raise error.AuthorizationError(url=str(url), reason=response.reason or "None given")
        return response

    async def propfind(
        self,
        url: Union[str, URL, None] = None,
        body: Union[str, bytes] = "",
        depth: int = 0,
    ) -> DAVResponse:
        """PROPFIND on url (default: the DAV root), rfc4918 sec. 9.1"""
        return await self.request(url or self.url, "PROPFIND", body, {"Depth": str(depth)})

    async def report(
        self,
        url: Union[str, URL, None] = None,
        body: Union[str, bytes] = "",
        depth: int = 0,
    ) -> DAVResponse:
        """REPORT on url (default: the DAV root), rfc3253 sec. 3.6"""
        return await self.request(url or self.url, "REPORT", body, {"Depth": str(depth)})

    async def mkcol(self, url: Union[str, URL], body: Union[str, bytes] = "") -> DAVResponse:
        """
        Send an extended MKCOL request (rfc5689).  The resourcetype in
        the body decides whether a calendar or a subscription is created.
        """
        return await self.request(url, "MKCOL", body)

    async def post(self, url: Union[str, URL], body: Union[str, bytes]) -> DAVResponse:
        return await self.request(url, "POST", body)


class HTTPBearerAuth(AuthBase):
    """Sends the token as ``Authorization: Bearer <token>``"""

    def __init__(self, token: str) -> None:
        self.token = token

    def __eq__(self, other: object) -> bool:
        return isinstance(other, HTTPBearerAuth) and self.token == other.token

    def __call__(self, r):
        r.headers["Authorization"] = f"Bearer {self.token}"
        return r
