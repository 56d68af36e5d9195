"""Namespace-tolerant access to vendor XML documents.

Vendor files mix qualified and unqualified forms of the same element
(``at:memory`` next to ``memory``) and prefix attributes inconsistently
(``edc:beginaddr`` vs ``beginaddr``). Everything above this module asks
for local names and gets whichever form the document used.

Attribute getters never raise; they return the given default (or 0 for
numeric getters). Only ``parse_document`` raises, and only for input that
is not well-formed XML.
"""
from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Dict, Iterator, List, Optional, Union

from atpack.errors import DocumentError
from atpack.utils.logger import get_logger

log = get_logger(__name__)

# Prefixes used by the vendor dialects, for documents that do not declare them
# on the element we are looking at.
KNOWN_NAMESPACES: Dict[str, str] = {
    "edc": "http://crownking/edc",
    "at": "http://www.atmel.com/schemas/pack-device-atmel-extension",
    "atmel": "http://www.atmel.com/schemas/pack-device-atmel-extension",
}


def local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""  # comments / processing instructions
    if tag.startswith("{"):
        return tag.rsplit("}", 1)[1]
    if ":" in tag:
        return tag.split(":", 1)[1]
    return tag


def children(el: Optional[ET.Element], name: str) -> List[ET.Element]:
    if el is None:
        return []
    return [c for c in el if local_name(c.tag) == name]


def child(el: Optional[ET.Element], name: str) -> Optional[ET.Element]:
    for c in children(el, name):
        return c
    return None


def descendants(el: Optional[ET.Element], name: str) -> List[ET.Element]:
    if el is None:
        return []
    return [d for d in el.iter() if d is not el and local_name(d.tag) == name]


def first_descendant(el: Optional[ET.Element], name: str) -> Optional[ET.Element]:
    if el is None:
        return None
    for d in el.iter():
        if d is not el and local_name(d.tag) == name:
            return d
    return None


def select(el: Optional[ET.Element], *names: str) -> List[ET.Element]:
    """Descendant chain query: select(root, "pinouts", "pinout") is the
    equivalent of the CSS selector ``pinouts pinout``."""
    current = [el] if el is not None else []
    for name in names:
        seen: set[int] = set()
        nxt: List[ET.Element] = []
        for c in current:
            for d in descendants(c, name):
                if id(d) not in seen:
                    seen.add(id(d))
                    nxt.append(d)
        current = nxt
    return current


def with_attr(elements: List[ET.Element], name: str, value: str) -> List[ET.Element]:
    return [e for e in elements if attr(e, name) == value]


# ---- attributes


def _raw_attr(el: ET.Element, name: str) -> Optional[str]:
    if ":" in name:
        prefix, local = name.split(":", 1)
        uri = KNOWN_NAMESPACES.get(prefix)
        if uri is not None:
            v = el.get(f"{{{uri}}}{local}")
            if v is not None:
                return v
        v = el.get(name)
        if v is not None:
            return v
    else:
        local = name
    v = el.get(local)
    if v is not None:
        return v
    for key, v in el.attrib.items():
        if local_name(key) == local:
            return v
    return None


def attr(el: Optional[ET.Element], name: str, default: str = "") -> str:
    if el is None:
        return default
    v = _raw_attr(el, name)
    return v if v else default


def has_attr(el: Optional[ET.Element], name: str) -> bool:
    return bool(attr(el, name))


def _to_int(text: str, base: int) -> Optional[int]:
    s = text.strip()
    if not s:
        return None
    try:
        return int(s, base)
    except ValueError:
        pass
    try:
        return int(s, 0)
    except ValueError:
        return None


def attr_int(el: Optional[ET.Element], name: str, base: int = 10) -> int:
    v = _to_int(attr(el, name), base)
    return v if v is not None else 0


def attr_hex(el: Optional[ET.Element], name: str) -> int:
    v = attr_hex_opt(el, name)
    return v if v is not None else 0


def attr_hex_opt(el: Optional[ET.Element], name: str) -> Optional[int]:
    """Base-16 attribute, or None when absent or unparsable."""
    s = attr(el, name).strip()
    if s.lower().startswith("0x"):
        s = s[2:]
    if not s:
        return None
    try:
        return int(s, 16)
    except ValueError:
        log.debug("attribute %s=%r is not hexadecimal", name, s)
        return None


def attr_float(el: Optional[ET.Element], name: str) -> Optional[float]:
    s = attr(el, name).strip()
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


# ---- documents


class Document:
    """A parsed XML document plus the lookups ElementTree lacks (parents)."""

    def __init__(self, root: ET.Element, namespaces: Optional[Dict[str, str]] = None, source: Optional[str] = None):
        self.root = root
        self.namespaces = dict(namespaces or {})
        self.source = source
        self._parents: Optional[Dict[int, ET.Element]] = None

    def select(self, *names: str) -> List[ET.Element]:
        # the root element itself may match the first step
        if not names:
            return [self.root]
        first = descendants(self.root, names[0])
        if local_name(self.root.tag) == names[0]:
            first.insert(0, self.root)
        out: List[ET.Element] = []
        seen: set[int] = set()
        for e in first:
            for m in (select(e, *names[1:]) if len(names) > 1 else [e]):
                if id(m) not in seen:
                    seen.add(id(m))
                    out.append(m)
        return out

    def first(self, *names: str) -> Optional[ET.Element]:
        for e in self.select(*names):
            return e
        return None

    def iter(self, name: str) -> Iterator[ET.Element]:
        for e in self.root.iter():
            if local_name(e.tag) == name:
                yield e

    def parent(self, el: ET.Element) -> Optional[ET.Element]:
        if self._parents is None:
            self._parents = {id(c): p for p in self.root.iter() for c in p}
        return self._parents.get(id(el))

    def closest(self, el: ET.Element, name: str) -> Optional[ET.Element]:
        cur = self.parent(el)
        while cur is not None:
            if local_name(cur.tag) == name:
                return cur
            cur = self.parent(cur)
        return None


def parse_document(data: Union[bytes, str], source: Optional[str] = None) -> Document:
    parser = ET.XMLPullParser(events=("start-ns", "end"))
    namespaces: Dict[str, str] = {}
    root: Optional[ET.Element] = None
    try:
        parser.feed(data)
        parser.close()
        for event, item in parser.read_events():
            if event == "start-ns":
                prefix, uri = item
                namespaces.setdefault(prefix, uri)
            else:
                root = item
    except ET.ParseError as exc:
        raise DocumentError(str(exc), source=source) from exc
    if root is None:
        raise DocumentError("no root element", source=source)
    return Document(root, namespaces=namespaces, source=source)


def as_document(doc: Union[Document, bytes, str], source: Optional[str] = None) -> Document:
    if isinstance(doc, Document):
        return doc
    return parse_document(doc, source=source)
