from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import List, Optional, Union

from atpack.model.device import (
    Peripheral,
    Register,
    RegisterBitfield,
    RegisterGroup,
    ValueGroup,
    ValueGroupEntry,
)
from atpack.parsers.document import (
    Document,
    as_document,
    attr,
    attr_hex,
    attr_hex_opt,
    attr_int,
    descendants,
)
from atpack.utils.bits import bit_range_from_mask
from atpack.utils.logger import get_logger

log = get_logger(__name__)


def parse_value_group(el: ET.Element) -> Optional[ValueGroup]:
    name = attr(el, "name")
    if not name:
        return None
    entries = []
    for v in descendants(el, "value"):
        vname = attr(v, "name")
        raw = attr(v, "value")
        if not (vname and raw):
            continue
        entries.append(ValueGroupEntry(name=vname, caption=attr(v, "caption") or vname, value=attr_hex(v, "value")))
    if not entries:
        return None
    return ValueGroup(name=name, values=tuple(entries))


def _parse_bitfield(el: ET.Element) -> Optional[RegisterBitfield]:
    name = attr(el, "name")
    if not name or not attr(el, "mask"):
        return None
    mask = attr_hex(el, "mask")
    offset, width = bit_range_from_mask(mask)
    return RegisterBitfield(
        name=name,
        caption=attr(el, "caption") or name,
        mask=mask,
        bit_offset=offset,
        bit_width=width,
        values=attr(el, "values") or None,
        access=attr(el, "rw") or None,
    )


def parse_register(el: ET.Element) -> Optional[Register]:
    name = attr(el, "name")
    if not (name and attr(el, "offset") and attr(el, "size")):
        return None
    bitfields = [bf for bf in map(_parse_bitfield, descendants(el, "bitfield")) if bf is not None]
    return Register(
        name=name,
        caption=attr(el, "caption") or name,
        offset=attr_hex(el, "offset"),
        size=attr_int(el, "size"),
        mask=attr_hex_opt(el, "mask"),
        initval=attr_hex_opt(el, "initval"),
        access=attr(el, "ocd-rw") or None,
        bitfields=tuple(bitfields),
    )


def _parse_register_group(el: ET.Element) -> Optional[RegisterGroup]:
    name = attr(el, "name")
    if not name:
        return None
    registers = [r for r in map(parse_register, descendants(el, "register")) if r is not None]
    if not registers:
        return None
    return RegisterGroup(name=name, caption=attr(el, "caption") or name, registers=tuple(registers))


def parse_peripheral(module: ET.Element) -> Optional[Peripheral]:
    name = attr(module, "name")
    caption = attr(module, "caption")
    if not (name and caption):
        return None

    groups = [g for g in map(_parse_register_group, descendants(module, "register-group")) if g is not None]
    values = [v for v in map(parse_value_group, descendants(module, "value-group")) if v is not None]
    if not groups and not values:
        return None
    return Peripheral(name=name, caption=caption, register_groups=tuple(groups), value_groups=tuple(values))


def parse_peripherals(data: Union[Document, bytes, str]) -> tuple[Peripheral, ...]:
    """Register catalogue of every described module, in document order.

    Value-group references on bitfields stay names; resolve them with
    ``Peripheral.value_group``.
    """
    doc = as_document(data)
    peripherals: List[Peripheral] = []
    for module in doc.iter("module"):
        p = parse_peripheral(module)
        if p is None:
            continue
        log.debug(
            "peripheral %s: %d register group(s), %d value group(s)",
            p.name,
            len(p.register_groups),
            len(p.value_groups),
        )
        peripherals.append(p)
    return tuple(peripherals)
