#!/usr/bin/env python
from typing import Dict
from typing import Optional

nsmap: Dict[str, str] = {
    "D": "DAV:",
    "C": "urn:ietf:params:xml:ns:caldav",
}

## The apple, calendarserver and nextcloud namespaces are only needed
## for a handful of properties, so they are not shipped in the
## namespace map of every request.
nsmap2: Dict[str, str] = nsmap.copy()
nsmap2["I"] = "http://apple.com/ns/ical/"
nsmap2["CS"] = "http://calendarserver.org/ns/"
nsmap2["NC"] = "http://nextcloud.com/ns"


def ns(prefix: str, tag: Optional[str] = None) -> str:
    name = "{%s}" % nsmap2[prefix]
    if tag is not None:
        name = "%s%s" % (name, tag)
    return name
