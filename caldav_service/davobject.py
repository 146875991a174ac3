#!/usr/bin/env python
import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote, unquote

from lxml.etree import _Element

from caldav_service.davclient import DAVResponse
from caldav_service.elements import dav
from caldav_service.elements.base import BaseElement
from caldav_service.lib import error
from caldav_service.lib.error import errmsg
from caldav_service.lib.url import URL

if TYPE_CHECKING:
    from caldav_service.davclient import AsyncDAVClient

log = logging.getLogger("caldav_service")


class DAVObject:
    """
    Base class for the collections on the server.  Instantiated by a
    client and an absolute or relative URL.
    """

    def __init__(self, client: "AsyncDAVClient", url: Union[str, URL]) -> None:
        self.client = client
        # url may be a path relative to the DAV root
        self.url = client.url.join(url)

    def __repr__(self) -> str:
        return "%s(%s)" % (self.__class__.__name__, self.url)

    def child_url(self, name: str) -> URL:
        """URL of the child collection with the given (unquoted) name"""
        return self.url.join(quote(name) + "/")

    async def _query_properties(
        self,
        props: Optional[Sequence[BaseElement]] = None,
        depth: int = 0,
        url: Optional[URL] = None,
    ) -> DAVResponse:
        """
        Do a PROPFIND on this object (or on the given url), asking for
        the given properties.
        """
        url = url or self.url
        body = b""
        if props:
            root = dav.Propfind() + (dav.Prop() + props)
            body = root.tostring(pretty_print=error.debug_dump_communication)

        ret = await self.client.propfind(url, body, depth)

        if ret.status == 404:
            raise error.NotFoundError(str(url), errmsg(ret))
        if ret.status >= 400:
            raise error.PropfindError(str(url), errmsg(ret))
        return ret

    async def get_properties(
        self,
        props: Optional[Sequence[BaseElement]] = None,
        url: Optional[URL] = None,
    ) -> Dict[str, _Element]:
        """Get properties (PROPFIND, depth 0) for this object, or for the
        object at url.

        Returns:
          ``{proptag: element, ...}``, the decoding of the elements is
          left to the caller
        """
        url = url or self.url
        response = await self._query_properties(props, 0, url)
        properties = response.find_objects_and_props()

        path = unquote(url.path)
        if path.endswith("/"):
            exchange_path = path[:-1]
        else:
            exchange_path = path + "/"

        if path in properties:
            return properties[path]
        if exchange_path in properties:
            return properties[exchange_path]
        if len(properties) == 1:
            ## let's be pragmatic and just accept whatever the server is
            ## throwing at us.  But we'll log a warning anyway.
            log.warning(
                "Possibly the server has a path handling problem.  Path expected: %s, path found: %s"
                % (path, str(list(properties)))
            )
            return list(properties.values())[0]
        raise error.PropfindError(
            str(url),
            "Path %s not found in response, paths found: %s" % (path, list(properties)),
        )

    async def children(
        self, props: Sequence[BaseElement]
    ) -> List[Tuple[URL, Dict[str, _Element]]]:
        """List the children of this collection, using a propfind on
        the collection at depth 1.  The collection itself is not
        included.
        """
        response = await self._query_properties(props, 1)
        properties = response.find_objects_and_props()

        me = self.url.canonical().strip_trailing_slash()
        ret = []
        for path, props_found in properties.items():
            url = self.url.join(quote(path))
            if url.canonical().strip_trailing_slash() == me:
                continue
            ret.append((url, props_found))
        return ret
