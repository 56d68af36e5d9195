"""Per-device legacy-family documents (EDC ``.PIC`` files).

Configuration words in this dialect do not always carry a mask per field.
Field positions come from a running bit cursor over the children of a
``DCRMode``: an ``AdjustPoint`` moves the cursor by its offset, a
``DCRFieldDef`` occupies ``nzwidth`` bits at the cursor and moves it past
them.
"""
from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from atpack.model.device import (
    BitValue,
    Bitfield,
    ConfigRegister,
    DebugInfo,
    Device,
    DeviceIdRevision,
    DeviceIdSpec,
    LegacySpecs,
    MemoryLayout,
    MemorySection,
    MemorySegment,
    Pinout,
    PowerSpec,
    ProgrammerInterface,
    ProgrammingSpec,
    Sfr,
    SfrField,
    Signature,
)
from atpack.parsers.document import (
    Document,
    as_document,
    attr,
    attr_float,
    attr_hex_opt,
    attr_int,
    child,
    descendants,
    first_descendant,
    local_name,
)
from atpack.parsers.pinouts import parse_legacy_pinouts
from atpack.utils.logger import get_logger

log = get_logger(__name__)

CONFIG_WORD_MASK = 0x3FFF
CONFIG_WORD_ADDRESS = 0x2007

_WHEN_RE = re.compile(r"==\s*0x([0-9a-fA-F]+)")


@dataclass(frozen=True)
class CursorRecord:
    """One child of a DCRMode as the bit cursor sees it."""

    kind: str  # "adjust" or "field"
    amount: int  # cursor offset for "adjust", bit width for "field"
    element: Optional[ET.Element] = None


@dataclass(frozen=True)
class LegacyDeviceData:
    name: str
    architecture: str
    signatures: tuple[Signature, ...]
    memory: MemoryLayout
    fuses: tuple[ConfigRegister, ...]
    pinouts: tuple[Pinout, ...]
    specs: LegacySpecs


def walk_config_fields(records: Iterable[CursorRecord]) -> Iterator[Tuple[CursorRecord, int]]:
    """Yield (field record, bit offset) for every field record in order."""
    cursor = 0
    for rec in records:
        if rec.kind == "adjust":
            cursor += rec.amount
        elif rec.kind == "field" and rec.amount > 0:
            yield rec, cursor
            cursor += rec.amount


def _cursor_records(mode: ET.Element) -> List[CursorRecord]:
    records = []
    for el in mode:
        name = local_name(el.tag)
        if name == "AdjustPoint":
            records.append(CursorRecord("adjust", attr_int(el, "edc:offset"), el))
        elif name == "DCRFieldDef":
            records.append(CursorRecord("field", attr_int(el, "edc:nzwidth"), el))
    return records


# ---- signatures and memory


def parse_signatures(doc: Document) -> tuple[Signature, ...]:
    sector = doc.first("DeviceIDSector")
    address = attr_hex_opt(sector, "edc:beginaddr")
    value = attr_hex_opt(sector, "edc:value")
    if address is None or value is None:
        return ()
    return (Signature(name="DEVID", value=value, address=address),)


def _span(el: Optional[ET.Element]) -> Optional[Tuple[int, int]]:
    begin = attr_hex_opt(el, "edc:beginaddr")
    end = attr_hex_opt(el, "edc:endaddr")
    if begin is None or end is None or end <= begin:
        return None
    return begin, end - begin


def parse_memory(doc: Document) -> MemoryLayout:
    segments: List[MemorySegment] = []

    flash_total = 0
    for sector in doc.iter("CodeSector"):
        span = _span(sector)
        if span is None:
            continue
        flash_total += span[1]
        segments.append(MemorySegment(name=attr(sector, "edc:sectionname", "CODE"), start=span[0], size=span[1], type="flash"))

    eeprom = None
    span = _span(doc.first("EEDataSector"))
    if span is not None:
        eeprom = MemorySegment(name="EEPROM", start=span[0], size=span[1], type="eeprom")
        segments.append(eeprom)

    fuses = MemorySegment(name="Configuration Words", start=CONFIG_WORD_ADDRESS, size=2, type="fuses")
    span = _span(doc.first("ConfigFuseSector"))
    if span is not None:
        fuses = MemorySegment(name="CONFIG", start=span[0], size=span[1], type="fuses")
        segments.append(fuses)

    sram = MemorySegment(name="Data Memory", start=0, size=0, type="ram")
    end = attr_hex_opt(doc.first("DataSpace"), "edc:endaddr")
    if end:
        sram = MemorySegment(name="SRAM", start=0, size=end, type="ram")
        segments.append(sram)

    return MemoryLayout(
        flash=MemorySegment(name="Program Memory", start=0, size=flash_total, type="flash"),
        sram=sram,
        fuses=fuses,
        lockbits=MemorySegment(name="Code Protection", start=CONFIG_WORD_ADDRESS, size=2, type="lockbits"),
        eeprom=eeprom,
        segments=tuple(segments),
    )


# ---- configuration words


def _field_values(field: ET.Element) -> Optional[tuple[BitValue, ...]]:
    values = []
    for sem in descendants(field, "DCRFieldSemantic"):
        m = _WHEN_RE.search(attr(sem, "edc:when"))
        if m:
            values.append(BitValue(value=int(m.group(1), 16), name=attr(sem, "edc:cname"), description=attr(sem, "edc:desc")))
    return tuple(values) or None


def _config_word(dcr: ET.Element) -> ConfigRegister:
    mode = first_descendant(child(dcr, "DCRModeList"), "DCRMode")
    if mode is None:
        mode = first_descendant(dcr, "DCRMode")

    bitfields = []
    if mode is not None:
        for rec, offset in walk_config_fields(_cursor_records(mode)):
            el = rec.element
            bitfields.append(
                Bitfield(
                    name=attr(el, "edc:cname") or attr(el, "edc:name"),
                    description=attr(el, "edc:desc"),
                    bit_offset=offset,
                    bit_width=rec.amount,
                    mask=attr_hex_opt(el, "edc:mask"),
                    values=_field_values(el),
                )
            )

    width = attr_int(dcr, "edc:nzwidth")
    impl = attr_hex_opt(dcr, "edc:impl")
    default = attr_hex_opt(dcr, "edc:default")
    return ConfigRegister(
        name=attr(dcr, "edc:cname") or attr(dcr, "edc:name") or "CONFIG",
        offset=attr_hex_opt(dcr, "edc:_addr") or 0,
        size=(width + 7) // 8 if width > 0 else 2,
        mask=impl if impl is not None else CONFIG_WORD_MASK,
        default_value=default if default is not None else CONFIG_WORD_MASK,
        bitfields=tuple(bitfields),
    )


def parse_config_words(doc: Document) -> tuple[ConfigRegister, ...]:
    words = tuple(_config_word(dcr) for dcr in doc.iter("DCRDef"))
    for word in words:
        for issue in word.issues():
            log.warning("%s", issue)
    return words


# ---- device specifications


def _sections(doc: Document, tag: str, name: str, begin: str, end: str, description: str) -> tuple[MemorySection, ...]:
    return tuple(
        MemorySection(
            name=attr(el, "edc:regionid", name),
            start_address=attr(el, "edc:beginaddr", begin),
            end_address=attr(el, "edc:endaddr", end),
            description=attr(el, "edc:sectiondesc", description),
        )
        for el in doc.iter(tag)
    )


def _data_sections(doc: Document) -> tuple[MemorySection, ...]:
    out = []
    for el in doc.iter("SFRDataSector"):
        bank = attr(el, "edc:bank", "0")
        out.append(
            MemorySection(
                name=f"Bank {bank}",
                start_address=attr(el, "edc:beginaddr", "0x0"),
                end_address=attr(el, "edc:endaddr", "0x0"),
                description=f"SFR Data Bank {bank}",
            )
        )
    return tuple(out)


def _power(el: Optional[ET.Element], default_attr: str) -> Optional[PowerSpec]:
    if el is None:
        return None
    return PowerSpec(
        min=attr_float(el, "edc:minvoltage") or 0.0,
        max=attr_float(el, "edc:maxvoltage") or 0.0,
        nominal=attr_float(el, "edc:nominalvoltage") or None,
        default_voltage=attr_float(el, default_attr) or None,
    )


def _programming(doc: Document) -> tuple[ProgrammingSpec, ...]:
    latches = {attr(el, "edc:progop"): attr_int(el, "edc:nzsize") for el in doc.iter("ProgrammingRowSize")}
    return tuple(
        ProgrammingSpec(
            operation=attr(el, "edc:progop"),
            time=attr_int(el, "edc:time"),
            time_units=attr(el, "edc:timeunits", "us"),
            latch_size=latches.get(attr(el, "edc:progop")),
        )
        for el in doc.iter("ProgrammingWaitTime")
    )


def _device_id(doc: Document) -> Optional[DeviceIdSpec]:
    sector = doc.first("DeviceIDSector")
    if sector is None:
        return None
    return DeviceIdSpec(
        address=attr(sector, "edc:beginaddr", "0x2006"),
        mask=attr(sector, "edc:mask", "0x3fe0"),
        value=attr(sector, "edc:value", "0xe00"),
        revisions=tuple(
            DeviceIdRevision(value=attr(r, "edc:value"), revisions=attr(r, "edc:revlist"))
            for r in descendants(sector, "DEVIDToRev")
        ),
    )


def sfr_field_bits(mask: int) -> str:
    """Bit positions of an SFR field mask: "3", "0-2" or "0,2,5"."""
    if mask <= 0:
        return "0"
    bits = [i for i in range(mask.bit_length()) if (mask >> i) & 1]
    if len(bits) == 1:
        return str(bits[0])
    if bits[-1] - bits[0] == len(bits) - 1:
        return f"{bits[0]}-{bits[-1]}"
    return ",".join(map(str, bits))


def _field_mask(el: ET.Element) -> int:
    mask = attr_hex_opt(el, "edc:mask")
    return 1 if mask is None else mask


def _sfrs(doc: Document) -> tuple[Sfr, ...]:
    sfrs = []
    for el in doc.iter("SFRDef"):
        fields = tuple(
            SfrField(
                name=attr(f, "edc:cname", "unknown"),
                bits=sfr_field_bits(_field_mask(f)),
                description=attr(f, "edc:desc"),
                access=attr(f, "edc:access", "rw"),
            )
            for f in descendants(el, "SFRFieldDef")
        )
        sfrs.append(
            Sfr(
                name=attr(el, "edc:cname", "unknown"),
                address=attr(el, "edc:_addr", "0x0"),
                description=attr(el, "edc:desc"),
                access=attr(el, "edc:access", "--------"),
                reset_value=attr(el, "edc:por", "00000000"),
                fields=fields,
            )
        )
    return tuple(sfrs)


def parse_specs(doc: Document) -> LegacySpecs:
    root = doc.first("PIC")
    traits = doc.first("MemTraits")
    stack = attr(traits, "edc:hwstackdepth")
    iset = doc.first("InstructionSet")
    breakpoints = doc.first("Breakpoints")
    return LegacySpecs(
        architecture=attr(root, "edc:arch") if root is not None else None,
        stack_depth=attr_int(traits, "edc:hwstackdepth") if stack else None,
        instruction_set=attr(iset, "edc:instructionsetid") if iset is not None else None,
        code_memory=_sections(doc, "CodeSector", "unknown", "0x0", "0x0", "Code section"),
        data_memory=_data_sections(doc),
        eeprom_memory=_sections(doc, "EEDataSector", "eedata", "0x2100", "0x2200", "Data EEPROM"),
        config_memory=tuple(
            replace(s, description="Configuration Fuses")
            for s in _sections(doc, "ConfigFuseSector", ".config", "0x2007", "0x2008", "")
        ),
        vdd=_power(doc.first("VDD"), "edc:maxdefaultvoltage"),
        vpp=_power(doc.first("VPP"), "edc:defaultvoltage"),
        programming=_programming(doc),
        device_id=_device_id(doc),
        debug=DebugInfo(
            hardware_breakpoints=attr_int(breakpoints, "edc:hwbpcount"),
            has_data_capture=attr(breakpoints, "edc:hasdatacapture", "false") == "true",
        )
        if breakpoints is not None
        else None,
        sfrs=_sfrs(doc),
    )


# ---- device


def parse_legacy_device(data: Union[Document, bytes, str], device_name: str, source: Optional[str] = None) -> LegacyDeviceData:
    doc = as_document(data, source=source)
    root = doc.first("PIC")
    if root is None:
        log.warning("%s: no PIC element in %s", device_name, source or "document")
    return LegacyDeviceData(
        name=device_name,
        architecture=attr(root, "edc:arch", "pic16"),
        signatures=parse_signatures(doc),
        memory=parse_memory(doc),
        fuses=parse_config_words(doc),
        pinouts=parse_legacy_pinouts(doc, device_name),
        specs=parse_specs(doc),
    )


def enrich_device(device: Device, data: Union[Document, bytes, str], source: Optional[str] = None) -> Device:
    """New Device with the legacy document's sections; family and architecture are kept."""
    log.info("enriching %s from legacy-family document", device.name)
    parsed = parse_legacy_device(data, device.name, source=source)

    programmer = device.programmer
    if programmer == ProgrammerInterface():
        programmer = ProgrammerInterface(type="ICSP", protocols=("ICSP",))

    enriched = replace(
        device,
        signatures=parsed.signatures,
        memory=parsed.memory,
        fuses=parsed.fuses,
        lockbits=(),
        pinouts=parsed.pinouts,
        programmer=programmer,
        legacy=parsed.specs,
    )
    log.debug(
        "%s: %d configuration word(s), %d pin(s), %d SFR(s)",
        device.name,
        len(enriched.fuses),
        sum(len(p.pins) for p in enriched.pinouts),
        len(parsed.specs.sfrs),
    )
    return enriched
