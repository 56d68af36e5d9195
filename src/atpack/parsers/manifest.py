"""Package manifest (.pdsc) extractor.

The manifest lists every device of a pack under ``family`` (and optionally
``subFamily``) groupings. Per-device detail lives in separate documents;
this module produces the skeletons they later enrich.
"""
from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Callable, Dict, List, Optional, Union

from atpack.model.device import (
    Device,
    DeviceFamily,
    Documentation,
    MemoryLayout,
    MemorySegment,
    Pack,
    PackIndexEntry,
    PackMetadata,
    ProgrammerInterface,
    Variant,
)
from atpack.parsers.classify import classify_book, is_legacy_family_name, is_register_family_name
from atpack.parsers.document import (
    Document,
    as_document,
    attr,
    attr_float,
    attr_hex,
    attr_hex_opt,
    attr_int,
    child,
    local_name,
    select,
)
from atpack.utils.logger import get_logger

log = get_logger(__name__)

_RAM_FALLBACK_NAMES = ("IRAM", "INTERNAL_SRAM")


def parse_manifest(data: Union[Document, bytes, str], source: Optional[str] = None) -> Pack:
    doc = as_document(data, source=source)
    pkg = doc.first("package")
    if pkg is None:
        pkg = doc.root

    desc = child(pkg, "description")
    metadata = PackMetadata(
        name=attr(pkg, "name") or _text(child(pkg, "name"), "Unknown"),
        vendor=attr(pkg, "vendor") or _text(child(pkg, "vendor"), "Unknown"),
        description=_text(desc, ""),
        url=attr(pkg, "url") or _text(child(pkg, "url"), ""),
    )
    version = attr(pkg, "version") or _latest_release(pkg) or "1.0.0"

    device_family = detect_device_family(doc)
    devices = tuple(
        _parse_device(doc, el, device_family) for el in doc.select("family", "device") if attr(el, "Dname")
    )
    log.info("manifest %s: %d device(s), family %s", metadata.name, len(devices), device_family.value)
    return Pack(metadata=metadata, version=version, devices=devices)


def _text(el: Optional[ET.Element], default: str) -> str:
    if el is None or el.text is None:
        return default
    return el.text.strip() or default


def _latest_release(pkg: ET.Element) -> str:
    for rel in select(pkg, "releases", "release"):
        return attr(rel, "version")
    return ""


def _enclosing(doc: Document, el: ET.Element, name: str) -> Optional[ET.Element]:
    cur = doc.parent(el)
    while cur is not None:
        if attr(cur, name):
            return cur
        cur = doc.parent(cur)
    return None


def _parse_device(doc: Document, el: ET.Element, device_family: DeviceFamily) -> Device:
    group = _enclosing(doc, el, "Dfamily")
    family = attr(group, "Dfamily")

    processor = child(el, "processor")
    if processor is None and group is not None:
        processor = child(group, "processor")

    return Device(
        name=attr(el, "Dname"),
        family=family,
        architecture=attr(processor, "Dcore"),
        device_family=device_family,
        memory=_parse_memory_layout(el),
        variants=_parse_variants(el),
        documentation=_parse_documentation(el),
        programmer=_parse_programmer(el),
    )


# ---- memory


def _memory_elements(el: ET.Element) -> List[ET.Element]:
    # at:memory extension elements and plain <memory start=...> alike
    return [m for m in el.iter() if local_name(m.tag) == "memory" and (attr(m, "start") or attr(m, "size"))]


def _find_memory(mems: List[ET.Element], type_: str, name: str) -> Optional[ET.Element]:
    tests: List[Callable[[ET.Element], bool]] = [
        lambda m: attr(m, "type") == type_ and attr(m, "name") == name,
        lambda m: attr(m, "type") == type_,
        lambda m: attr(m, "name") == name,
    ]
    if type_ == "flash":
        tests.append(lambda m: attr(m, "name") == "FLASH")
    if type_ == "ram" or name == "SRAM":
        tests.append(lambda m: attr(m, "name") in _RAM_FALLBACK_NAMES)
    for test in tests:
        for m in mems:
            if test(m):
                return m
    return None


def _skeleton_segment(mems: List[ET.Element], type_: str, name: str) -> MemorySegment:
    m = _find_memory(mems, type_, name)
    if m is None:
        return MemorySegment(name=name, start=0, size=0, type=type_)
    return MemorySegment(
        name=name,
        start=attr_hex(m, "start"),
        size=attr_hex(m, "size"),
        page_size=attr_hex_opt(m, "pagesize"),
        type=type_,
    )


def _parse_memory_layout(el: ET.Element) -> MemoryLayout:
    mems = _memory_elements(el)
    log.debug("device %s: %d memory element(s)", attr(el, "Dname"), len(mems))
    if not mems:
        return MemoryLayout()

    segments = []
    for m in mems:
        size = attr_hex(m, "size")
        if size <= 0:
            continue
        name = attr(m, "name") or attr(m, "id") or "Unknown"
        segments.append(
            MemorySegment(
                name=name,
                start=attr_hex(m, "start"),
                size=size,
                page_size=attr_hex_opt(m, "pagesize"),
                type=attr(m, "type"),
                section=name,
            )
        )

    has_eeprom = any(attr(m, "type") == "eeprom" for m in mems)
    return MemoryLayout(
        flash=_skeleton_segment(mems, "flash", "FLASH"),
        sram=_skeleton_segment(mems, "ram", "SRAM"),
        fuses=_skeleton_segment(mems, "fuses", "FUSES"),
        lockbits=_skeleton_segment(mems, "lockbits", "LOCKBITS"),
        eeprom=_skeleton_segment(mems, "eeprom", "EEPROM") if has_eeprom else None,
        segments=tuple(segments),
    )


# ---- variants, documentation, programmer


def pinout_table(el: ET.Element) -> Dict[str, Dict[int, str]]:
    """name -> {position: pad} for every named pinout below el."""
    table: Dict[str, Dict[int, str]] = {}
    for p in select(el, "pinouts", "pinout"):
        name = attr(p, "name")
        if not name:
            continue
        pins: Dict[int, str] = {}
        for pin in select(p, "pin"):
            position = attr_int(pin, "position")
            pad = attr(pin, "pad")
            if position > 0 and pad:
                pins[position] = pad
        table[name] = pins
    return table


def make_variant(el: ET.Element, pinouts: Dict[str, Dict[int, str]], with_speed: bool = False) -> Variant:
    ref = attr(el, "pinout")
    speed_grade = None
    speed = attr_float(el, "speedmax")
    if with_speed and speed:
        speed_grade = f"{speed / 1_000_000:g}MHz"
    return Variant(
        name=attr(el, "ordercode"),
        package=attr(el, "package"),
        temperature_range=f"{attr(el, 'tempmin', '?')}°C to {attr(el, 'tempmax', '?')}°C",
        voltage_range=f"{attr(el, 'vccmin', '?')}V to {attr(el, 'vccmax', '?')}V",
        temp_min=attr_float(el, "tempmin"),
        temp_max=attr_float(el, "tempmax"),
        vcc_min=attr_float(el, "vccmin"),
        vcc_max=attr_float(el, "vccmax"),
        speed_grade=speed_grade,
        pinout=dict(pinouts.get(ref, {})) if ref else {},
    )


def _parse_variants(el: ET.Element) -> tuple[Variant, ...]:
    pinouts = pinout_table(el)
    return tuple(make_variant(v, pinouts) for v in el.iter() if local_name(v.tag) == "variant")


def _parse_documentation(el: ET.Element) -> Documentation:
    datasheet = None
    product_page = None
    notes: List[str] = []
    other: List[str] = []
    for book in (b for b in el.iter() if local_name(b.tag) == "book"):
        name = attr(book, "name")
        title = attr(book, "title")
        if not name or not title:
            continue
        kind = classify_book(title)
        if kind == "datasheet":
            datasheet = name
        elif kind == "product_page":
            product_page = name
        elif kind == "application_note":
            notes.append(name)
        else:
            log.debug("unclassified book %r (%s)", title, name)
            other.append(name)
    return Documentation(
        datasheet=datasheet,
        product_page=product_page,
        application_notes=tuple(notes),
        other=tuple(other),
    )


def _parse_programmer(el: ET.Element) -> ProgrammerInterface:
    protocols = [
        attr(i, "type") or attr(i, "name")
        for i in el.iter()
        if local_name(i.tag) == "interface"
    ]
    protocols = [p for p in protocols if p]
    if not protocols:
        return ProgrammerInterface()
    return ProgrammerInterface(type=protocols[0], protocols=tuple(protocols))


# ---- family detection and pack index


def detect_device_family(data: Union[Document, bytes, str]) -> DeviceFamily:
    """Which per-device dialect a pack ships: EDC for PIC packs, ATDF otherwise.

    Family and device names decide first. The pack name and vendor are only
    consulted when no name carries a marker, since Microchip publishes both
    dialects.
    """
    doc = as_document(data)
    root = doc.root

    names = [attr(f, "Dfamily") for f in doc.iter("family")]
    names += [attr(d, "Dname") for d in doc.iter("device")]
    names = [n for n in names if n]
    if any(is_legacy_family_name(n) for n in names):
        return DeviceFamily.PIC
    if any(is_register_family_name(n) for n in names):
        return DeviceFamily.AVR

    if is_legacy_family_name(_text(doc.first("name"), "")):
        return DeviceFamily.PIC

    vendor = _text(doc.first("vendor"), "") or attr(doc.first("package"), "vendor")
    if "microchip" in vendor.lower():
        return DeviceFamily.PIC

    log.debug("no PIC markers in %s, assuming AVR", local_name(root.tag))
    return DeviceFamily.AVR


def parse_pack_index(data: Union[Document, bytes, str]) -> List[PackIndexEntry]:
    """Entries of a pack index (.pidx); URLs point at each pack's .pdsc."""
    doc = as_document(data)
    entries = []
    for p in doc.iter("pdsc"):
        name = attr(p, "name")
        url = attr(p, "url")
        vendor = attr(p, "vendor")
        if not (name and url and vendor):
            continue
        if not url.endswith("/"):
            url += "/"
        entries.append(
            PackIndexEntry(
                name=f"{vendor}.{name}",
                url=f"{url}{vendor}.{name}.pdsc",
                version=attr(p, "version", "x.y.z"),
                description=f"{vendor} {name} Device Family Pack",
            )
        )
    log.info("pack index: %d pack(s)", len(entries))
    return entries
