"""Per-device register-family documents (.atdf).

``enrich_device`` takes a manifest skeleton and returns a new Device with
every section the document describes. Each section is built on its own; a
section the document lacks comes back empty, or keeps the skeleton's value
where the manifest already had one (variants, the coarse memory map).
"""
from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import replace
from typing import Dict, List, Optional, Tuple, Union

from atpack.memory.reconcile import reconcile
from atpack.model.device import (
    BitValue,
    Bitfield,
    ConfigRegister,
    Device,
    ElectricalParameter,
    ElectricalParameters,
    Interrupt,
    MemoryLayout,
    MemorySegment,
    Module,
    Signature,
    Variant,
)
from atpack.parsers.classify import is_electrical_group, is_fuse_module, is_lock_module
from atpack.parsers.clock import parse_clock_info
from atpack.parsers.document import (
    Document,
    as_document,
    attr,
    attr_float,
    attr_hex,
    attr_hex_opt,
    attr_int,
    children,
    descendants,
    select,
)
from atpack.parsers.manifest import make_variant, pinout_table
from atpack.parsers.peripherals import parse_peripherals
from atpack.parsers.pinouts import parse_pinouts
from atpack.parsers.timers import parse_timers
from atpack.utils.bits import all_ones, bit_range_from_mask, combined_mask, default_register_value
from atpack.utils.logger import get_logger

log = get_logger(__name__)

_SIGNATURE_RE = re.compile(r"^SIGNATURE(\d+)$")


# ---- signatures


def parse_signatures(doc: Document) -> tuple[Signature, ...]:
    sigs = []
    for group in doc.iter("property-group"):
        if attr(group, "name") != "SIGNATURES":
            continue
        for prop in children(group, "property"):
            name = attr(prop, "name")
            if not (name and attr(prop, "value")):
                continue
            m = _SIGNATURE_RE.match(name)
            sigs.append(
                Signature(
                    name=name,
                    value=attr_hex(prop, "value"),
                    address=int(m.group(1)) if m else None,
                )
            )
    # addressed signatures first, by address; the rest alphabetically
    sigs.sort(key=lambda s: (s.address is None, s.address or 0, s.name))
    return tuple(sigs)


# ---- memory


def _device_element(doc: Document, name: str) -> Optional[ET.Element]:
    devices = list(doc.iter("device"))
    for d in devices:
        if attr(d, "name").upper() == name.upper():
            return d
    return devices[0] if devices else None


def _address_spaces(doc: Document, device_name: str) -> List[Tuple[MemorySegment, List[MemorySegment]]]:
    dev = _device_element(doc, device_name)
    if dev is None:
        return []

    spaces = []
    for space in select(dev, "address-spaces", "address-space"):
        space_name = attr(space, "name")
        aggregate = MemorySegment(
            name=space_name,
            start=attr_hex(space, "start"),
            size=attr_hex(space, "size"),
            type=space_name,
            is_address_space=True,
        )
        segments = []
        for seg in children(space, "memory-segment"):
            seg_name = attr(seg, "name")
            page_size = attr_hex(seg, "pagesize")
            segments.append(
                MemorySegment(
                    name=seg_name.lower(),
                    start=attr_hex(seg, "start"),
                    size=attr_hex(seg, "size"),
                    page_size=page_size if page_size > 0 else None,
                    type=attr(seg, "type"),
                    section="" if seg_name.lower() == space_name.lower() else seg_name,
                    parent=space_name,
                )
            )
        spaces.append((aggregate, segments))
    return spaces


def _segment_in(doc: Document, space_name: str, key: str, value: str) -> Optional[ET.Element]:
    for space in doc.iter("address-space"):
        if attr(space, "name") != space_name:
            continue
        for seg in descendants(space, "memory-segment"):
            if attr(seg, key) == value:
                return seg
    return None


def parse_memory(doc: Document, device: Device) -> MemoryLayout:
    memory = device.memory
    spaces = _address_spaces(doc, device.name)
    if spaces:
        memory = replace(memory, segments=reconcile(spaces))

    seg = _segment_in(doc, "prog", "type", "flash")
    if seg is not None:
        memory = replace(
            memory,
            flash=replace(
                memory.flash,
                start=attr_hex(seg, "start"),
                size=attr_hex(seg, "size"),
                page_size=attr_hex(seg, "pagesize"),
            ),
        )
    seg = _segment_in(doc, "data", "name", "IRAM")
    if seg is not None:
        memory = replace(memory, sram=replace(memory.sram, start=attr_hex(seg, "start"), size=attr_hex(seg, "size")))
    seg = _segment_in(doc, "eeprom", "type", "eeprom")
    if seg is not None:
        memory = replace(
            memory,
            eeprom=MemorySegment(
                name="EEPROM",
                start=attr_hex(seg, "start"),
                size=attr_hex(seg, "size"),
                page_size=attr_hex(seg, "pagesize"),
                type="eeprom",
            ),
        )
    seg = _segment_in(doc, "fuses", "type", "fuses")
    if seg is not None:
        memory = replace(memory, fuses=replace(memory.fuses, size=attr_hex(seg, "size")))
    seg = _segment_in(doc, "lockbits", "type", "lockbits")
    if seg is not None:
        memory = replace(memory, lockbits=replace(memory.lockbits, size=attr_hex(seg, "size")))
    return memory


# ---- fuses and lockbits


def _bit_values(scope: ET.Element, group_name: str) -> Optional[tuple[BitValue, ...]]:
    if not group_name:
        return None
    for vg in descendants(scope, "value-group"):
        if attr(vg, "name") == group_name:
            return tuple(
                BitValue(value=attr_hex(v, "value"), name=attr(v, "name"), description=attr(v, "caption"))
                for v in descendants(vg, "value")
            )
    return None


def parse_config_register(reg: ET.Element, values_scope: ET.Element) -> ConfigRegister:
    """A fuse or lockbit register with mask-derived bitfields and derived default."""
    size = attr_int(reg, "size")
    masks = []
    bitfields = []
    for bf in descendants(reg, "bitfield"):
        mask = attr_hex(bf, "mask")
        offset, width = bit_range_from_mask(mask)
        masks.append(mask)
        bitfields.append(
            Bitfield(
                name=attr(bf, "name"),
                description=attr(bf, "caption"),
                bit_offset=offset,
                bit_width=width,
                mask=mask,
                values=_bit_values(values_scope, attr(bf, "values")),
            )
        )
    mask = attr_hex_opt(reg, "mask")
    return ConfigRegister(
        name=attr(reg, "name"),
        offset=attr_hex(reg, "offset"),
        size=size,
        mask=mask if mask is not None else all_ones(size),
        default_value=default_register_value(attr_hex_opt(reg, "initval"), combined_mask(masks), size),
        bitfields=tuple(bitfields),
    )


def _definition_modules(doc: Document) -> List[ET.Element]:
    # register layouts live under modules/module; peripherals/module only lists instances
    mods = doc.select("modules", "module")
    return mods or list(doc.iter("module"))


def _report(registers: List[ConfigRegister]) -> None:
    for reg in registers:
        for issue in reg.issues():
            log.warning("%s", issue)


def parse_fuses(doc: Document) -> tuple[ConfigRegister, ...]:
    fuses: List[ConfigRegister] = []
    for module in _definition_modules(doc):
        if not is_fuse_module(attr(module, "name")):
            continue
        # value groups referenced by fuse bitfields may sit outside the module
        fuses.extend(parse_config_register(r, doc.root) for r in select(module, "register-group", "register"))
        break
    _report(fuses)
    return tuple(fuses)


def parse_lockbits(doc: Document) -> tuple[ConfigRegister, ...]:
    lockbits: List[ConfigRegister] = []
    for module in _definition_modules(doc):
        if not is_lock_module(attr(module, "name")):
            continue
        for r in descendants(module, "register"):
            reg = parse_config_register(r, module)
            if reg.bitfields:
                lockbits.append(reg)
    _report(lockbits)
    return tuple(lockbits)


# ---- variants, modules, interrupts


def parse_variants(doc: Document) -> tuple[Variant, ...]:
    pinouts = pinout_table(doc.root)
    return tuple(make_variant(v, pinouts, with_speed=True) for v in doc.select("variants", "variant"))


def parse_modules(doc: Document) -> tuple[Module, ...]:
    modules = []
    for instance in doc.select("peripherals", "module", "instance"):
        name = attr(instance, "name")
        parent = doc.parent(instance)
        modules.append(Module(name=name, type=attr(instance, "caption") or attr(parent, "name"), instance=name))
    return tuple(sorted(modules, key=lambda m: m.name))


def parse_interrupts(doc: Document) -> tuple[Interrupt, ...]:
    interrupts = [
        Interrupt(index=attr_int(i, "index"), name=attr(i, "name"), caption=attr(i, "caption"))
        for i in doc.select("interrupts", "interrupt")
        if attr(i, "name")
    ]
    return tuple(sorted(interrupts, key=lambda i: i.index))


# ---- electrical parameters


def _group_parameters(group: ET.Element) -> List[ElectricalParameter]:
    group_name = attr(group, "name")
    params = []
    for prop in descendants(group, "property"):
        name = attr(prop, "name")
        lo, typ, hi = attr_float(prop, "min"), attr_float(prop, "typ"), attr_float(prop, "max")
        if lo is None and typ is None and hi is None:
            typ = attr_float(prop, "value")
        params.append(
            ElectricalParameter(
                name=name,
                group=group_name,
                caption=attr(prop, "caption") or name,
                description=attr(prop, "description"),
                min_value=lo,
                typical_value=typ,
                max_value=hi,
                unit=attr(prop, "unit") or None,
                conditions=attr(prop, "conditions"),
                temperature_range=attr(prop, "temp"),
                voltage_range=attr(prop, "vcc"),
            )
        )
    return params


def _variant_parameters(doc: Document) -> List[ElectricalParameter]:
    params = []
    for v in doc.select("variants", "variant"):
        conditions = f"Variant: {attr(v, 'ordercode')}"
        if attr(v, "vccmin") or attr(v, "vccmax"):
            params.append(
                ElectricalParameter(
                    name="VCC",
                    group="SUPPLY_VOLTAGE",
                    caption="Supply Voltage",
                    description="Operating supply voltage range",
                    min_value=attr_float(v, "vccmin"),
                    max_value=attr_float(v, "vccmax"),
                    unit="V",
                    conditions=conditions,
                )
            )
        if attr(v, "tempmin") or attr(v, "tempmax"):
            params.append(
                ElectricalParameter(
                    name="TA",
                    group="TEMPERATURE",
                    caption="Ambient Temperature",
                    description="Operating temperature range",
                    min_value=attr_float(v, "tempmin"),
                    max_value=attr_float(v, "tempmax"),
                    unit="°C",
                    conditions=conditions,
                )
            )
        speed = attr_float(v, "speedmax")
        if speed:
            params.append(
                ElectricalParameter(
                    name="FMAX",
                    group="TIMING",
                    caption="Maximum Clock Frequency",
                    description="Maximum operating frequency",
                    max_value=speed / 1_000_000,
                    unit="MHz",
                    conditions=conditions,
                )
            )
    return params


def parse_electrical(doc: Document) -> Optional[ElectricalParameters]:
    params: List[ElectricalParameter] = []
    for group in doc.select("property-groups", "property-group"):
        if is_electrical_group(attr(group, "name")):
            params.extend(_group_parameters(group))
    params.extend(_variant_parameters(doc))
    if not params:
        return None
    params.sort(key=lambda p: (p.group, p.name))
    groups = sorted({p.group for p in params})
    return ElectricalParameters(parameters=tuple(params), groups=tuple(groups))


# ---- device


def enrich_device(device: Device, data: Union[Document, bytes, str], source: Optional[str] = None) -> Device:
    """New Device with the document's sections; family and architecture are kept."""
    doc = as_document(data, source=source)
    log.info("enriching %s from register-family document", device.name)

    sections: Dict[str, object] = {
        "signatures": parse_signatures(doc),
        "memory": parse_memory(doc, device),
        "fuses": parse_fuses(doc),
        "lockbits": parse_lockbits(doc),
        "modules": parse_modules(doc),
        "interrupts": parse_interrupts(doc),
        "electrical": parse_electrical(doc),
        "peripherals": parse_peripherals(doc),
        "pinouts": parse_pinouts(doc),
        "timers": parse_timers(doc),
        "clock": parse_clock_info(doc),
    }
    variants = parse_variants(doc)
    if variants:
        sections["variants"] = variants

    enriched = replace(device, **sections)
    log.debug(
        "%s: %d signature(s), %d fuse(s), %d lockbit register(s), %d module(s), %d interrupt(s)",
        enriched.name,
        len(enriched.signatures),
        len(enriched.fuses),
        len(enriched.lockbits),
        len(enriched.modules),
        len(enriched.interrupts),
    )
    return enriched
