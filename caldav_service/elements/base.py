#!/usr/bin/env python
"""
Building blocks for XML request bodies.  An element class knows its
tag; instances are combined with ``+``:

    dav.Propfind() + (dav.Prop() + [dav.DisplayName(), dav.ResourceType()])
"""
import sys
from collections.abc import Iterable
from typing import ClassVar, Dict, List, Optional, Union

from lxml import etree
from lxml.etree import _Element

from caldav_service.lib.namespace import nsmap
from caldav_service.lib.python_utilities import to_unicode

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self


class BaseElement:
    tag: ClassVar[Optional[str]] = None

    def __init__(
        self, name: Optional[str] = None, value: Union[str, bytes, None] = None
    ) -> None:
        self.children: List["BaseElement"] = []
        self.attributes: Dict[str, str] = {}
        self.value: Optional[str] = to_unicode(value)
        if name is not None:
            self.attributes["name"] = name

    def __repr__(self) -> str:
        return "%s(%r)" % (self.__class__.__name__, self.attributes or self.value)

    def __add__(self, other: Union["BaseElement", Iterable["BaseElement"]]) -> Self:
        return self.append(other)

    def append(self, element: Union["BaseElement", Iterable["BaseElement"]]) -> Self:
        if isinstance(element, Iterable):
            self.children.extend(element)
        else:
            self.children.append(element)
        return self

    def xmlelement(self) -> _Element:
        if self.tag is None:
            raise ValueError("%s has no tag" % self.__class__.__name__)
        root = etree.Element(self.tag, nsmap=nsmap)
        if self.value is not None:
            root.text = self.value
        for key, value in self.attributes.items():
            root.set(key, value)
        for child in self.children:
            root.append(child.xmlelement())
        return root

    def tostring(self, pretty_print: bool = False) -> bytes:
        """The serialized request body, with xml declaration"""
        return etree.tostring(
            self.xmlelement(),
            encoding="utf-8",
            xml_declaration=True,
            pretty_print=pretty_print,
        )


class NamedBaseElement(BaseElement):
    """An element that needs a name attribute, like C:comp"""

    def __init__(self, name: str) -> None:
        super().__init__(name=name)


class ValuedBaseElement(BaseElement):
    """An element holding text, like D:displayname"""

    def __init__(self, value: Union[str, bytes, None] = None) -> None:
        super().__init__(value=value)
