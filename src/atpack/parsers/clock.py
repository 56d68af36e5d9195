"""Clock tree options: clock sources, prescalers, ADC references, PLL.

Most of this is read from fuse and register enumerations. When a document
has nothing usable, the common values of the family are substituted so a
consumer always has a table to offer.
"""
from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from typing import Callable, List, Optional, Union

from atpack.model.device import AdcReference, ClockInfo, ClockPrescaler, ClockSource, PllInfo
from atpack.parsers.classify import (
    clock_source_kind,
    frequency_from_caption,
    prescaler_divider,
    reference_description,
    startup_time_from_caption,
    voltage_from_caption,
)
from atpack.parsers.document import Document, as_document, attr, attr_hex, attr_int, descendants
from atpack.utils.logger import get_logger

log = get_logger(__name__)

SYSTEM_DIVIDERS = (1, 2, 4, 8, 16, 32, 64, 128, 256, 1024)
TIMER_DIVIDERS = (1, 8, 64, 256, 1024)
PLL_MULTIPLIER = 8

FALLBACK_ADC_PRESCALERS = (
    ClockPrescaler("ADPS_128", "ADC clock divided by 128", 7, 128),
    ClockPrescaler("ADPS_64", "ADC clock divided by 64", 6, 64),
    ClockPrescaler("ADPS_32", "ADC clock divided by 32", 5, 32),
)

FALLBACK_ADC_REFERENCES = (
    AdcReference("AREF", "External Reference", "0", "Variable", "External AREF pin"),
    AdcReference("AVCC", "AVCC Reference", "1", "5.0V", "Supply voltage reference"),
)

BitfieldTest = Callable[[ET.Element], bool]


def _named_or_captioned(name: str, caption: str) -> BitfieldTest:
    return lambda bf: attr(bf, "name") == name or caption in attr(bf, "caption")


def _first_bitfield(doc: Document, test: BitfieldTest) -> Optional[ET.Element]:
    for bf in doc.iter("bitfield"):
        if test(bf):
            return bf
    return None


def _enumeration(doc: Document, test: BitfieldTest) -> List[ET.Element]:
    """<value> elements of the group referenced by the first matching bitfield."""
    bf = _first_bitfield(doc, lambda b: test(b) and bool(attr(b, "values")))
    if bf is None:
        return []
    group_name = attr(bf, "values")
    for vg in doc.iter("value-group"):
        if attr(vg, "name") == group_name:
            return descendants(vg, "value")
    return []


def _prescaler(v: ET.Element) -> Optional[ClockPrescaler]:
    caption = attr(v, "caption")
    divider = prescaler_divider(caption)
    if divider <= 0:
        return None
    return ClockPrescaler(name=attr(v, "name"), caption=caption, value=attr_hex(v, "value"), divider=divider)


def parse_clock_sources(doc: Document) -> tuple[ClockSource, ...]:
    sources = []
    for v in _enumeration(doc, _named_or_captioned("SUT_CKSEL", "Clock Source")):
        name = attr(v, "name")
        caption = attr(v, "caption")
        sources.append(
            ClockSource(
                name=name,
                caption=caption,
                value=attr_hex(v, "value"),
                type=clock_source_kind(name, caption),
                frequency=frequency_from_caption(caption),
                startup_time=startup_time_from_caption(caption),
            )
        )
    return tuple(sources)


def system_prescalers() -> tuple[ClockPrescaler, ...]:
    return tuple(
        ClockPrescaler(f"CLKPR_DIV{d}", f"System clock divided by {d}", int(math.log2(d)), d)
        for d in SYSTEM_DIVIDERS
    )


def parse_timer_prescalers(doc: Document) -> tuple[ClockPrescaler, ...]:
    found = {}
    for vg in doc.iter("value-group"):
        name = attr(vg, "name")
        if "CLK_SEL" not in name and "PRESCALER" not in name:
            continue
        for v in descendants(vg, "value"):
            p = _prescaler(v)
            if p is not None and p.divider not in found:
                found[p.divider] = p
    prescalers = list(found.values())
    if not prescalers:
        prescalers = [
            ClockPrescaler(f"CS_DIV{d}", f"Clock divided by {d}", 1 if d == 1 else int(math.log2(d)) + 1, d)
            for d in TIMER_DIVIDERS
        ]
    return tuple(sorted(prescalers, key=lambda p: p.divider))


def parse_adc_prescalers(doc: Document) -> tuple[ClockPrescaler, ...]:
    prescalers = [p for p in map(_prescaler, _enumeration(doc, _named_or_captioned("ADPS", "ADC Prescaler"))) if p]
    if not prescalers:
        log.debug("no ADC prescaler enumeration, using fallback table")
        prescalers = list(FALLBACK_ADC_PRESCALERS)
    return tuple(sorted(prescalers, key=lambda p: p.divider))


def parse_adc_references(doc: Document) -> tuple[AdcReference, ...]:
    refs = []
    for v in _enumeration(doc, _named_or_captioned("REFS", "Reference Selection")):
        caption = attr(v, "caption")
        refs.append(
            AdcReference(
                name=attr(v, "name"),
                caption=caption,
                value=attr(v, "value"),
                voltage=voltage_from_caption(caption),
                description=reference_description(caption),
            )
        )
    if not refs:
        log.debug("no ADC reference enumeration, using fallback table")
        return FALLBACK_ADC_REFERENCES
    return tuple(refs)


def parse_adc_channels(doc: Document) -> tuple[int, ...]:
    channels = []
    for module in doc.iter("module"):
        if attr(module, "name") != "ADC":
            continue
        for sig in descendants(module, "signal"):
            if attr(sig, "group") == "ADC":
                channels.append(attr_int(sig, "index"))
    return tuple(sorted(channels))


def parse_pll(doc: Document) -> Optional[PllInfo]:
    if _first_bitfield(doc, lambda bf: "PLL" in attr(bf, "name") or "PLL" in attr(bf, "caption")) is None:
        return None
    inputs = []
    for vg in doc.iter("value-group"):
        if "PLL" in attr(vg, "name"):
            inputs.extend(p for p in map(_prescaler, descendants(vg, "value")) if p)
    return PllInfo(available=True, input_prescalers=tuple(inputs), multiplier=PLL_MULTIPLIER)


def parse_clock_info(data: Union[Document, bytes, str]) -> ClockInfo:
    doc = as_document(data)
    info = ClockInfo(
        sources=parse_clock_sources(doc),
        system_prescalers=system_prescalers(),
        timer_prescalers=parse_timer_prescalers(doc),
        adc_prescalers=parse_adc_prescalers(doc),
        adc_references=parse_adc_references(doc),
        adc_channels=parse_adc_channels(doc),
        has_clock_output=_first_bitfield(doc, _named_or_captioned("CKOUT", "Clock output")) is not None,
        has_clock_divide8=_first_bitfield(doc, _named_or_captioned("CKDIV8", "Divide clock by 8")) is not None,
        pll=parse_pll(doc),
    )
    log.debug(
        "clock: %d source(s), %d ADC channel(s), pll=%s",
        len(info.sources),
        len(info.adc_channels),
        info.pll is not None,
    )
    return info
