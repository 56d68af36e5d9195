from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Union

from atpack.model.device import Timer, TimerMode, TimerOutput, TimerPrescaler, TimerRegisters
from atpack.parsers.classify import (
    is_clock_select_field,
    is_control_register,
    is_timer_module,
    is_timer_output,
    is_waveform_field,
    register_role,
    timer_kind,
    timer_prescaler_divider,
)
from atpack.parsers.document import Document, as_document, attr, attr_hex, descendants, select
from atpack.utils.logger import get_logger

log = get_logger(__name__)

DEFAULT_MODES = (
    TimerMode("Normal", "Normal mode (count up to MAX)", 0),
    TimerMode("CTC", "Clear Timer on Compare Match", 1),
    TimerMode("PWM", "Pulse Width Modulation", 2),
)

DEFAULT_PRESCALERS = (
    TimerPrescaler("No Clock", "Timer stopped", 0, 0),
    TimerPrescaler("clk/1", "No prescaling", 1, 1),
    TimerPrescaler("clk/8", "Clock divided by 8", 2, 8),
    TimerPrescaler("clk/64", "Clock divided by 64", 3, 64),
    TimerPrescaler("clk/256", "Clock divided by 256", 4, 256),
    TimerPrescaler("clk/1024", "Clock divided by 1024", 5, 1024),
)


def _value_group(module: ET.Element, name: str) -> List[ET.Element]:
    if not name:
        return []
    for vg in descendants(module, "value-group"):
        if attr(vg, "name") == name:
            return descendants(vg, "value")
    return []


def _control_bitfields(module: ET.Element) -> List[ET.Element]:
    fields = []
    for reg in select(module, "register-group", "register"):
        if is_control_register(attr(reg, "name")):
            fields.extend(descendants(reg, "bitfield"))
    return fields


def _modes(module: ET.Element) -> tuple[TimerMode, ...]:
    modes = []
    for bf in _control_bitfields(module):
        if not is_waveform_field(attr(bf, "name"), attr(bf, "caption")):
            continue
        for v in _value_group(module, attr(bf, "values")):
            name = attr(v, "name")
            modes.append(TimerMode(name=name, caption=attr(v, "caption") or name, value=attr_hex(v, "value")))
    return tuple(modes) or DEFAULT_MODES


def _prescalers(module: ET.Element) -> tuple[TimerPrescaler, ...]:
    prescalers = []
    for bf in _control_bitfields(module):
        if not is_clock_select_field(attr(bf, "name"), attr(bf, "caption")):
            continue
        for v in _value_group(module, attr(bf, "values")):
            name = attr(v, "name")
            caption = attr(v, "caption")
            prescalers.append(
                TimerPrescaler(
                    name=name,
                    caption=caption or name,
                    value=attr_hex(v, "value"),
                    divider=timer_prescaler_divider(name, caption),
                )
            )
    return tuple(prescalers) or DEFAULT_PRESCALERS


def _outputs(instance: ET.Element) -> tuple[TimerOutput, ...]:
    outputs = []
    for sig in select(instance, "signals", "signal"):
        function = attr(sig, "function")
        if is_timer_output(function, attr(sig, "group")):
            outputs.append(TimerOutput(name=function, pin=attr(sig, "pad"), modes=(f"Output Compare {function}",)))
    return tuple(outputs)


def _registers(module: ET.Element) -> TimerRegisters:
    control: List[str] = []
    compare: List[str] = []
    counter = capture = None
    for reg in select(module, "register-group", "register"):
        name = attr(reg, "name")
        role = register_role(name) if name else None
        if role == "control":
            control.append(name)
        elif role == "counter":
            counter = name
        elif role == "compare":
            compare.append(name)
        elif role == "capture":
            capture = name
    return TimerRegisters(control=tuple(control), counter=counter, compare=tuple(compare), capture=capture)


def _definitions(doc: Document) -> Dict[str, ET.Element]:
    # modules/module carries registers and value groups, peripherals/module the instances
    return {attr(m, "name"): m for m in doc.select("modules", "module") if attr(m, "name")}


def parse_timers(data: Union[Document, bytes, str]) -> tuple[Timer, ...]:
    doc = as_document(data)
    definitions = _definitions(doc)

    timers = []
    for module in doc.iter("module"):
        module_name = attr(module, "name")
        if not is_timer_module(module_name):
            continue
        definition: Optional[ET.Element] = definitions.get(module_name, module)
        for instance in descendants(module, "instance"):
            name = attr(instance, "name")
            if not name:
                continue
            timers.append(
                Timer(
                    name=name,
                    caption=attr(instance, "caption") or name,
                    type=timer_kind(module_name, name),
                    modes=_modes(definition),
                    prescalers=_prescalers(definition),
                    outputs=_outputs(instance),
                    registers=_registers(definition),
                )
            )
    log.debug("%d timer instance(s)", len(timers))
    return tuple(timers)


# ---- arithmetic over extracted timers


def timer_frequency(system_clock_hz: float, divider: int) -> float:
    if divider == 0:
        return 0.0
    return system_clock_hz / divider


def timer_period_us(system_clock_hz: float, divider: int, max_value: int) -> float:
    """Overflow period in microseconds when counting 0..max_value."""
    f = timer_frequency(system_clock_hz, divider)
    if f == 0:
        return 0.0
    return (max_value + 1) / f * 1_000_000


def pwm_frequency(system_clock_hz: float, divider: int, top: int) -> float:
    f = timer_frequency(system_clock_hz, divider)
    if f == 0:
        return 0.0
    return f / (top + 1)


def duty_cycle(compare: int, top: int) -> float:
    if top == 0:
        return 0.0
    return compare / top * 100
