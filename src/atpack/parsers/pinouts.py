from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Union

from atpack.model.device import Pin, PinFunction, Pinout
from atpack.parsers.classify import classify_legacy_function
from atpack.parsers.document import (
    Document,
    as_document,
    attr,
    attr_int,
    descendants,
)
from atpack.utils.logger import get_logger

log = get_logger(__name__)

_FUNCTION_COLORS = (
    ("PORT", "#4CAF50"),
    ("USART", "#2196F3"),
    ("SPI", "#FF9800"),
    ("TWI", "#9C27B0"),
    ("ADC", "#F44336"),
    ("TIMER", "#795548"),
    ("TC", "#795548"),
    ("PWM", "#607D8B"),
    ("EXINT", "#FFEB3B"),
    ("PCINT", "#FFEB3B"),
    ("ANALOG", "#E91E63"),
    ("POWER", "#000000"),
    ("CRYSTAL", "#9E9E9E"),
    ("RESET", "#F44336"),
)
DEFAULT_COLOR = "#666666"


def function_color(module: str) -> str:
    """Color hint for drawing a pin function of the given module kind."""
    m = module.upper()
    for key, color in _FUNCTION_COLORS:
        if key in m:
            return color
    return DEFAULT_COLOR


def functions_by_module(functions: Iterable[PinFunction]) -> Dict[str, List[PinFunction]]:
    groups: Dict[str, List[PinFunction]] = defaultdict(list)
    for f in functions:
        groups[f.module or "Unknown"].append(f)
    return dict(groups)


# ---- register family


def signal_map(doc: Document) -> Dict[str, List[PinFunction]]:
    """pad -> functions, from every module/instance/signals/signal."""
    pads: Dict[str, List[PinFunction]] = defaultdict(list)
    for sig in doc.select("module", "instance", "signals", "signal"):
        group = attr(sig, "group")
        function = attr(sig, "function")
        pad = attr(sig, "pad")
        instance = doc.closest(sig, "instance")
        module = doc.closest(sig, "module")
        if not (group and function and pad) or instance is None or module is None:
            continue
        index = attr(sig, "index")
        pads[pad].append(
            PinFunction(
                group=group,
                function=function,
                module=attr(module, "name"),
                module_caption=attr(instance, "caption"),
                index=attr_int(sig, "index") if index else None,
            )
        )
    return dict(pads)


def parse_pinouts(data: Union[Document, bytes, str]) -> tuple[Pinout, ...]:
    doc = as_document(data)
    pads = signal_map(doc)

    pinouts = []
    for el in doc.select("pinouts", "pinout"):
        name = attr(el, "name")
        if not name:
            continue
        pins = []
        for p in descendants(el, "pin"):
            pad = attr(p, "pad")
            if not (attr(p, "position") and pad):
                continue
            pins.append(Pin(position=attr_int(p, "position"), pad=pad, functions=tuple(pads.get(pad, ()))))
        if not pins:
            continue
        pins.sort(key=lambda pin: pin.position)
        pinouts.append(Pinout(name=name, caption=attr(el, "caption") or name, pins=tuple(pins)))

    log.debug("%d pinout(s), %d pad(s) with signals", len(pinouts), len(pads))
    return tuple(pinouts)


# ---- legacy family


def parse_legacy_pinouts(data: Union[Document, bytes, str], device_name: str) -> tuple[Pinout, ...]:
    """Single pinout from an EDC PinList.

    The first VirtualPin names the pad, the rest are its alternate functions.
    Pins carry no position, so it is the pin's index in the list plus one.
    """
    doc = as_document(data)
    pin_list = doc.first("PinList")
    if pin_list is None:
        log.warning("%s: no PinList", device_name)
        return ()

    pins = []
    for i, el in enumerate(descendants(pin_list, "Pin")):
        virtual = descendants(el, "VirtualPin")
        if not virtual:
            log.debug("%s: pin %d has no VirtualPin", device_name, i)
            continue
        pad = attr(virtual[0], "edc:name")
        if not pad:
            continue
        functions = []
        for v in virtual[1:]:
            fname = attr(v, "edc:name")
            if not fname:
                continue
            module = classify_legacy_function(fname)
            functions.append(PinFunction(group=fname, function=fname, module=module, module_caption=module))
        pins.append(Pin(position=i + 1, pad=pad, functions=tuple(functions)))

    if not pins:
        return ()
    return (Pinout(name=f"{device_name}_PINOUT", caption=f"{device_name} Package", pins=tuple(pins)),)
