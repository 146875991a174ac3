#!/usr/bin/env python
import builtins
import logging
import os
from typing import Optional

from caldav_service import __version__

## Environmental variables prepended with "PYTHON_CALDAV_SERVICE" are used for
## debug purposes, environmental variables prepended with "CALDAV_SERVICE_" are
## for connection parameters (see caldav_service.config)
debug_dump_communication = bool(os.environ.get("PYTHON_CALDAV_SERVICE_COMMDUMP", False))
## one of DEBUG_PDB, DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("PYTHON_CALDAV_SERVICE_DEBUGMODE")
if not debugmode:
    if "dev" in __version__:
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("caldav_service")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)
else:
    log.setLevel(logging.WARNING)


def errmsg(r) -> str:
    """Utility for formatting an error response to an error string"""
    return "%s %s\n\n%s" % (r.status, r.reason, r.raw)


def weirdness(*reasons) -> None:
    from caldav_service.lib.debug import xmlstring

    reason = " : ".join([xmlstring(x) for x in reasons])
    log.warning(f"Deviation from expectations found: {reason}")
    if debugmode == "DEBUG_PDB":
        log.error(f"Dropping into debugger due to {reason}")
        import pdb

        pdb.set_trace()


def assert_(condition: object) -> None:
    try:
        assert condition
    except AssertionError:
        if debugmode == "PRODUCTION":
            log.error(
                "Deviation from expectations found.  %s" % ERR_FRAGMENT, exc_info=True
            )
        elif debugmode == "DEBUG_PDB":
            log.error("Deviation from expectations found.  Dropping into debugger")
            import pdb

            pdb.set_trace()
        else:
            raise


ERR_FRAGMENT: str = "Please include this error, the traceback (if any) and the name and version of the calendar server when reporting the problem"


class DAVError(Exception):
    url: Optional[str] = None
    reason: str = "no reason"

    def __init__(self, url: Optional[str] = None, reason: Optional[str] = None) -> None:
        if url:
            self.url = url
        if reason:
            self.reason = reason

    def __str__(self) -> str:
        return "%s at '%s', reason %s" % (
            self.__class__.__name__,
            self.url,
            self.reason,
        )


class AuthorizationError(DAVError):
    """
    The client encountered an HTTP 401 or 403 error and is passing it on
    to the user. The url property will contain the url in question,
    the reason property will contain the excuse the server sent.
    """

    pass


class ConnectionError(DAVError, builtins.ConnectionError):
    """
    The server could not be reached, or the session bootstrap failed.
    Fatal to the calling operation; never retried by this library.
    """

    pass


class NotAuthenticatedError(DAVError):
    """
    The operation needs a session bootstrapped for the user view, but
    the session is public (or not bootstrapped at all).
    """

    reason = "operation requires a session initialized for the user view"


class SessionModeError(DAVError):
    """
    The session was already (being) bootstrapped in the other mode.
    A session is either user-authenticated or public, never both.
    """

    pass


class PropfindError(DAVError):
    pass


class ReportError(DAVError):
    pass


class MkcolError(DAVError):
    pass


class CollectionCreateError(MkcolError):
    """
    The server rejected the creation of a calendar or subscription
    collection, for instance because the name is taken.
    """

    pass


class PostError(DAVError):
    pass


class NotFoundError(DAVError):
    pass


class PrincipalNotFoundError(NotFoundError):
    pass


class ResponseError(DAVError):
    pass
