"""Small name/caption classifiers used by the extractors.

Vendor documents do not tag semantic roles, so modules, bitfields and
captions are recognised by substring. Each rule lives here, with its
fallback, so it can be tested on its own.
"""
from __future__ import annotations

import re
from typing import Optional

# ---- modules and registers


def is_lock_module(name: str) -> bool:
    return "lock" in name.lower()


def is_fuse_module(name: str) -> bool:
    return name == "FUSE"


def is_timer_module(name: str) -> bool:
    return name.startswith("TC") or "TIMER" in name or "PWM" in name


def timer_kind(module_name: str, instance_name: str) -> str:
    if "ASYNC" in module_name:
        return "timer8async"
    if "16" in module_name or "16" in instance_name:
        return "timer16"
    return "timer8"


def is_control_register(name: str) -> bool:
    return "TCCR" in name or "CTRL" in name


def register_role(name: str) -> Optional[str]:
    """Role of a timer register: control, counter, compare or capture."""
    if is_control_register(name):
        return "control"
    if "TCNT" in name or "CNT" in name:
        return "counter"
    if "OCR" in name or "COMP" in name:
        return "compare"
    if "ICR" in name or "CAP" in name:
        return "capture"
    return None


def is_waveform_field(name: str, caption: str) -> bool:
    return "WGM" in name or "waveform" in caption.lower()


def is_clock_select_field(name: str, caption: str) -> bool:
    return "CS" in name or "clock" in caption.lower()


def is_timer_output(function: str, group: str) -> bool:
    return "OC" in function or "PWM" in function or "OC" in group


_ELECTRICAL_MARKERS = ("ELECTRICAL", "ABSOLUTE", "DC", "AC")


def is_electrical_group(name: str) -> bool:
    return any(m in name for m in _ELECTRICAL_MARKERS)


# ---- documentation


def classify_book(title: str) -> Optional[str]:
    """Map a manifest <book> title to datasheet / product_page / application_note."""
    t = title.lower()
    if "datasheet" in t:
        return "datasheet"
    if "device page" in t:
        return "product_page"
    if "application note" in t or "app note" in t:
        return "application_note"
    return None


# ---- device families


def is_legacy_family_name(name: str) -> bool:
    """PIC16, dsPIC33F, PIC16F628A ..."""
    return "pic" in name.lower()


def is_register_family_name(name: str) -> bool:
    """ATmega, ATtiny85, AVR DA, AVR128DA48 ..."""
    n = name.lower()
    return n.startswith("at") or "avr" in n


# ---- clocks


def clock_source_kind(name: str, caption: str) -> str:
    combined = f"{name} {caption}".lower()
    if "crystal" in combined or "xosc" in combined:
        return "crystal"
    if "ext" in combined:
        return "external"
    return "internal"


_FREQ_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(MHz|KHz|Hz)", re.IGNORECASE)
_FREQ_SCALE = {"mhz": 1_000_000, "khz": 1_000, "hz": 1}


def frequency_from_caption(caption: str) -> Optional[float]:
    m = _FREQ_RE.search(caption)
    if not m:
        return None
    return float(m.group(1)) * _FREQ_SCALE[m.group(2).lower()]


_STARTUP_RE = re.compile(r"Start-up time:\s*([^;]+)", re.IGNORECASE)


def startup_time_from_caption(caption: str) -> Optional[str]:
    m = _STARTUP_RE.search(caption)
    return m.group(1).strip() if m else None


_DIVIDER_PATTERNS = (
    re.compile(r"divided\s+by\s+(\d+)", re.IGNORECASE),
    re.compile(r"/(\d+)"),
    re.compile(r"clk/(\d+)", re.IGNORECASE),
    re.compile(r"prescaler\s+(\d+)", re.IGNORECASE),
)


def prescaler_divider(caption: str) -> int:
    """Divider named in a prescaler caption; 0 when there is none."""
    for pattern in _DIVIDER_PATTERNS:
        m = pattern.search(caption)
        if m:
            return int(m.group(1))
    if "no prescal" in caption.lower():
        return 1
    return 0


_TIMER_DIVIDER_RE = re.compile(r"(?:clk/|div|/)?(\d+)")


def timer_prescaler_divider(name: str, caption: str) -> int:
    """Divider for a timer clock-select value; stopped clocks give 0, otherwise 1."""
    # caption first
    text = f"{caption} {name}".lower()
    m = _TIMER_DIVIDER_RE.search(text)
    if m:
        return int(m.group(1))
    if "stop" in text or "no clock" in text:
        return 0
    return 1


_VOLTAGE_RE = re.compile(r"(\d+\.?\d*)\s*V", re.IGNORECASE)


def voltage_from_caption(caption: str) -> str:
    m = _VOLTAGE_RE.search(caption)
    if m:
        return f"{m.group(1)}V"
    low = caption.lower()
    if "external" in low or "aref" in low:
        return "Variable"
    if "avcc" in low or "vcc" in low:
        return "5.0V"
    if "internal" in low:
        for v in ("1.1", "2.56", "1.8"):
            if v in caption:
                return f"{v}V"
    return "Unknown"


def reference_description(caption: str) -> str:
    desc = re.sub(r"\d+\.?\d*\s*V", "", caption, flags=re.IGNORECASE).strip()
    if desc:
        desc = desc[0].upper() + desc[1:]
    return desc or caption


# ---- legacy pin functions

_LEGACY_FUNCTION_RULES = (
    ("POWER", ("VDD", "VSS", "VPP")),
    ("OSCILLATOR", ("OSC", "CLK")),
    ("PROGRAMMING", ("MCLR", "PGM", "PGC", "PGD")),
    ("TIMER", ("T0CKI", "T1", "CCP")),
)

_LEGACY_FUNCTION_RULES_LATE = (
    ("UART", ("TX", "RX", "DT", "CK")),
    ("SPI", ("SCK", "SDI", "SDO", "SS")),
    ("I2C", ("SCL", "SDA")),
    ("COMPARATOR", ("C1OUT", "C2OUT", "CVREF")),
    ("VOLTAGE_REF", ("VREF",)),
    ("INTERRUPT", ("INT",)),
)

_ADC_RE = re.compile(r"AN\d+")


def classify_legacy_function(function: str) -> str:
    """Module kind for a legacy pin function name; GPIO when nothing matches."""
    f = function.upper()
    for module, markers in _LEGACY_FUNCTION_RULES:
        if any(m in f for m in markers):
            return module
    if _ADC_RE.search(f):
        return "ADC"
    for module, markers in _LEGACY_FUNCTION_RULES_LATE:
        if any(m in f for m in markers):
            return module
    return "GPIO"
