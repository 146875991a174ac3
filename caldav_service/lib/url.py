#!/usr/bin/env python
from typing import Any
from typing import Optional
from typing import Union
from urllib.parse import ParseResult
from urllib.parse import SplitResult
from urllib.parse import quote
from urllib.parse import unquote
from urllib.parse import urlparse
from urllib.parse import urlunparse

from caldav_service.lib.python_utilities import to_normal_str


class URL:
    """
    Wraps URLs into objects, so that every method dealing with the
    server can be fed a URL object, a string or a parsed URL.

    Addresses may be one out of three:

    1) a path relative to the DAV root, i.e. "calendars/admin/personal/"
    2) an absolute path, i.e. "/remote.php/dav/calendars/admin/personal/"
    3) a fully qualified URL, i.e.
       "https://cloud.example.com/remote.php/dav/calendars/admin/personal/"

    Joining always resolves against the root URL of the connection;
    joining with a URL pointing to another host is refused.
    """

    def __init__(self, url: Union[str, ParseResult, SplitResult]) -> None:
        if isinstance(url, (ParseResult, SplitResult)):
            self.url_parsed: Optional[Union[ParseResult, SplitResult]] = url
            self.url_raw: Optional[str] = None
        else:
            self.url_raw = to_normal_str(url)
            self.url_parsed = None

    def __bool__(self) -> bool:
        return bool(self.url_raw or self.url_parsed)

    def __eq__(self, other: object) -> bool:
        if str(self) == str(other):
            return True
        # The URLs could have insignificant differences
        if not isinstance(other, URL):
            other = URL(str(other))
        return str(self.canonical()) == str(other.canonical())

    def __hash__(self) -> int:
        return hash(str(self))

    @classmethod
    def objectify(cls, url: Union["URL", str, ParseResult, SplitResult, None]) -> Optional["URL"]:
        if url is None or isinstance(url, URL):
            return url
        return URL(url)

    def _parsed(self) -> Union[ParseResult, SplitResult]:
        if self.url_parsed is None:
            self.url_parsed = urlparse(self.url_raw)
        return self.url_parsed

    # To deal with all kind of attributes of the ParseResult class
    def __getattr__(self, attr: str) -> Any:
        if "url_parsed" not in vars(self):
            raise AttributeError(attr)
        return getattr(self._parsed(), attr)

    def __str__(self) -> str:
        if self.url_raw is None:
            self.url_raw = self._parsed().geturl()
        return self.url_raw

    def __repr__(self) -> str:
        return "URL(%s)" % str(self)

    def strip_trailing_slash(self) -> "URL":
        if str(self).endswith("/"):
            return URL(str(self)[:-1])
        return self

    def unauth(self) -> "URL":
        if self.username is None:
            return self
        return URL(
            ParseResult(
                self.scheme,
                "%s:%s"
                % (self.hostname, self.port or {"https": 443, "http": 80}[self.scheme]),
                self.path.replace("//", "/"),
                self.params,
                self.query,
                self.fragment,
            )
        )

    def canonical(self) -> "URL":
        """
        a canonical URL ... no authentication details, no double slashes,
        an explicit port and a properly quoted path
        """
        url = self.unauth()
        arr = list(url._parsed())
        arr[2] = quote(unquote(url.path.replace("//", "/")))
        if not arr[0]:
            arr[0] = "https"
        if arr[1] and ":" not in arr[1]:
            arr[1] += {"https": ":443", "http": ":80"}.get(arr[0], "")
        return URL(urlunparse(arr))

    def join(self, path: Any) -> "URL":
        """
        assumes this object is the base URL or base path.  A relative
        path is appended to the base, an absolute path replaces the path
        of the base.  A fully qualified URL is accepted only when it
        points to the same server as self.
        """
        if not path or not str(path):
            return self
        path = URL.objectify(path)
        if (
            (path.scheme and self.scheme and path.scheme != self.scheme)
            or (path.hostname and self.hostname and path.hostname != self.hostname)
            or (path.port and self.port and path.port != self.port)
        ):
            raise ValueError("%s can't be joined with %s" % (self, path))

        if path.path.startswith("/"):
            ret_path = path.path
        else:
            sep = "" if self.path.endswith("/") else "/"
            ret_path = "%s%s%s" % (self.path, sep, path.path)
        return URL(
            ParseResult(
                self.scheme or path.scheme,
                self.netloc or path.netloc,
                ret_path,
                path.params,
                path.query,
                path.fragment,
            )
        )
