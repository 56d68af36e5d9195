from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from atpack.utils.bits import all_ones


class DeviceFamily(str, Enum):
    AVR = "avr"  # per-device .atdf documents
    PIC = "pic"  # per-device EDC (.PIC) documents
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class PackMetadata:
    name: str = "Unknown"
    vendor: str = "Unknown"
    description: str = ""
    url: str = ""


@dataclass(frozen=True)
class PackIndexEntry:
    name: str
    url: str
    version: str
    description: str


@dataclass(frozen=True)
class Signature:
    name: str
    value: int
    address: Optional[int] = None


# ---- memory


@dataclass(frozen=True)
class MemorySegment:
    name: str
    start: int
    size: int
    page_size: Optional[int] = None
    type: str = ""
    section: str = ""
    is_address_space: bool = False
    parent: Optional[str] = None  # name of the enclosing address-space

    @property
    def end(self) -> int:
        return self.start + self.size


@dataclass(frozen=True)
class MemoryLayout:
    flash: MemorySegment = MemorySegment("FLASH", 0, 0)
    sram: MemorySegment = MemorySegment("SRAM", 0, 0)
    fuses: MemorySegment = MemorySegment("FUSES", 0, 0)
    lockbits: MemorySegment = MemorySegment("LOCKBITS", 0, 0)
    eeprom: Optional[MemorySegment] = None
    segments: tuple[MemorySegment, ...] = ()


# ---- registers and bitfields


@dataclass(frozen=True)
class BitValue:
    value: int
    name: str
    description: str = ""


@dataclass(frozen=True)
class Bitfield:
    name: str
    description: str
    bit_offset: int
    bit_width: int
    mask: Optional[int] = None
    values: Optional[tuple[BitValue, ...]] = None

    @property
    def end(self) -> int:
        return self.bit_offset + self.bit_width


@dataclass(frozen=True)
class ConfigRegister:
    """A fuse, lockbit byte or legacy configuration word."""

    name: str
    offset: int
    size: int
    mask: int
    default_value: Optional[int] = None
    bitfields: tuple[Bitfield, ...] = ()

    def field_default(self, bf: Bitfield) -> Optional[int]:
        if self.default_value is None:
            return None
        width_mask = (1 << bf.bit_width) - 1
        return (self.default_value >> bf.bit_offset) & width_mask

    def issues(self) -> list[str]:
        """Bitfields that do not fit the register; reported, never clamped."""
        limit = 8 * self.size
        return [
            f"{self.name}.{bf.name}: bits {bf.bit_offset}..{bf.end - 1} exceed {limit}-bit register"
            for bf in self.bitfields
            if self.size > 0 and bf.end > limit
        ]


@dataclass(frozen=True)
class ValueGroupEntry:
    name: str
    caption: str
    value: int


@dataclass(frozen=True)
class ValueGroup:
    name: str
    values: tuple[ValueGroupEntry, ...] = ()

    def caption_for(self, value: int) -> Optional[str]:
        for v in self.values:
            if v.value == value:
                return v.caption
        return None


@dataclass(frozen=True)
class RegisterBitfield:
    name: str
    caption: str
    mask: int
    bit_offset: int
    bit_width: int
    values: Optional[str] = None  # value-group name, resolved by the consumer
    access: Optional[str] = None


@dataclass(frozen=True)
class Register:
    name: str
    caption: str
    offset: int
    size: int
    mask: Optional[int] = None
    initval: Optional[int] = None
    access: Optional[str] = None
    bitfields: tuple[RegisterBitfield, ...] = ()

    @property
    def reset_mask(self) -> int:
        return self.mask if self.mask is not None else all_ones(self.size)


@dataclass(frozen=True)
class RegisterGroup:
    name: str
    caption: str
    registers: tuple[Register, ...] = ()


@dataclass(frozen=True)
class Peripheral:
    name: str
    caption: str
    register_groups: tuple[RegisterGroup, ...] = ()
    value_groups: tuple[ValueGroup, ...] = ()

    def value_group(self, name: Optional[str]) -> Optional[ValueGroup]:
        if not name:
            return None
        for vg in self.value_groups:
            if vg.name == name:
                return vg
        return None


# ---- package-level descriptive data


@dataclass(frozen=True)
class Variant:
    name: str
    package: str
    temperature_range: str
    voltage_range: str
    temp_min: Optional[float] = None
    temp_max: Optional[float] = None
    vcc_min: Optional[float] = None
    vcc_max: Optional[float] = None
    speed_grade: Optional[str] = None
    pinout: dict[int, str] = field(default_factory=dict)  # position -> pad


@dataclass(frozen=True)
class Documentation:
    """Books named in the manifest, by kind.

    ``other`` goes beyond the three classified kinds: it keeps every book
    whose title is not a datasheet, product page or application note
    (errata, user guides ...) instead of dropping it.
    """

    datasheet: Optional[str] = None
    product_page: Optional[str] = None
    application_notes: tuple[str, ...] = ()
    other: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProgrammerInterface:
    type: str = "ISP"
    protocols: tuple[str, ...] = ("ISP",)


@dataclass(frozen=True)
class Module:
    name: str
    type: str
    instance: str


@dataclass(frozen=True)
class Interrupt:
    index: int
    name: str
    caption: str = ""


@dataclass(frozen=True)
class ElectricalParameter:
    name: str
    group: str
    caption: str
    description: str = ""
    min_value: Optional[float] = None
    typical_value: Optional[float] = None
    max_value: Optional[float] = None
    unit: Optional[str] = None
    conditions: str = ""
    temperature_range: str = ""
    voltage_range: str = ""


@dataclass(frozen=True)
class ElectricalParameters:
    parameters: tuple[ElectricalParameter, ...] = ()
    groups: tuple[str, ...] = ()


# ---- pins


@dataclass(frozen=True)
class PinFunction:
    group: str
    function: str
    module: str
    module_caption: str = ""
    index: Optional[int] = None


@dataclass(frozen=True)
class Pin:
    position: int
    pad: str
    functions: tuple[PinFunction, ...] = ()


@dataclass(frozen=True)
class Pinout:
    name: str
    caption: str
    pins: tuple[Pin, ...] = ()


# ---- timers and clocks


@dataclass(frozen=True)
class TimerMode:
    name: str
    caption: str
    value: int


@dataclass(frozen=True)
class TimerPrescaler:
    name: str
    caption: str
    value: int
    divider: int


@dataclass(frozen=True)
class TimerOutput:
    name: str
    pin: str
    modes: tuple[str, ...] = ()


@dataclass(frozen=True)
class TimerRegisters:
    control: tuple[str, ...] = ()
    counter: Optional[str] = None
    compare: tuple[str, ...] = ()
    capture: Optional[str] = None


@dataclass(frozen=True)
class Timer:
    name: str
    caption: str
    type: str  # "timer8" | "timer16" | "timer8async"
    modes: tuple[TimerMode, ...] = ()
    prescalers: tuple[TimerPrescaler, ...] = ()
    outputs: tuple[TimerOutput, ...] = ()
    registers: TimerRegisters = TimerRegisters()


@dataclass(frozen=True)
class ClockSource:
    name: str
    caption: str
    value: int
    type: str  # "internal" | "external" | "crystal"
    frequency: Optional[float] = None
    startup_time: Optional[str] = None


@dataclass(frozen=True)
class ClockPrescaler:
    name: str
    caption: str
    value: int
    divider: int


@dataclass(frozen=True)
class AdcReference:
    name: str
    caption: str
    value: str
    voltage: str = "Unknown"
    description: str = ""


@dataclass(frozen=True)
class PllInfo:
    available: bool
    input_prescalers: tuple[ClockPrescaler, ...] = ()
    multiplier: Optional[int] = None


@dataclass(frozen=True)
class ClockInfo:
    sources: tuple[ClockSource, ...] = ()
    system_prescalers: tuple[ClockPrescaler, ...] = ()
    adc_prescalers: tuple[ClockPrescaler, ...] = ()
    adc_references: tuple[AdcReference, ...] = ()
    adc_channels: tuple[int, ...] = ()
    timer_prescalers: tuple[ClockPrescaler, ...] = ()
    has_clock_output: bool = False
    has_clock_divide8: bool = False
    pll: Optional[PllInfo] = None


# ---- legacy (EDC) device specifications


@dataclass(frozen=True)
class MemorySection:
    name: str
    start_address: str
    end_address: str
    description: str = ""


@dataclass(frozen=True)
class PowerSpec:
    min: float
    max: float
    nominal: Optional[float] = None
    default_voltage: Optional[float] = None


@dataclass(frozen=True)
class ProgrammingSpec:
    operation: str
    time: int
    time_units: str
    latch_size: Optional[int] = None


@dataclass(frozen=True)
class DeviceIdRevision:
    value: str
    revisions: str


@dataclass(frozen=True)
class DeviceIdSpec:
    address: str
    mask: str
    value: str
    revisions: tuple[DeviceIdRevision, ...] = ()


@dataclass(frozen=True)
class DebugInfo:
    hardware_breakpoints: int
    has_data_capture: bool


@dataclass(frozen=True)
class SfrField:
    name: str
    bits: str
    description: str = ""
    access: str = "rw"


@dataclass(frozen=True)
class Sfr:
    name: str
    address: str
    description: str = ""
    access: str = ""
    reset_value: str = ""
    fields: tuple[SfrField, ...] = ()


@dataclass(frozen=True)
class LegacySpecs:
    architecture: Optional[str] = None
    stack_depth: Optional[int] = None
    instruction_set: Optional[str] = None
    code_memory: tuple[MemorySection, ...] = ()
    data_memory: tuple[MemorySection, ...] = ()
    eeprom_memory: tuple[MemorySection, ...] = ()
    config_memory: tuple[MemorySection, ...] = ()
    vdd: Optional[PowerSpec] = None
    vpp: Optional[PowerSpec] = None
    programming: tuple[ProgrammingSpec, ...] = ()
    device_id: Optional[DeviceIdSpec] = None
    debug: Optional[DebugInfo] = None
    sfrs: tuple[Sfr, ...] = ()


# ---- device and pack


@dataclass(frozen=True)
class Device:
    name: str
    family: str = ""
    architecture: str = ""
    device_family: DeviceFamily = DeviceFamily.UNSUPPORTED
    signatures: tuple[Signature, ...] = ()
    memory: MemoryLayout = MemoryLayout()
    fuses: tuple[ConfigRegister, ...] = ()
    lockbits: tuple[ConfigRegister, ...] = ()
    variants: tuple[Variant, ...] = ()
    documentation: Documentation = Documentation()
    programmer: ProgrammerInterface = ProgrammerInterface()
    modules: tuple[Module, ...] = ()
    interrupts: tuple[Interrupt, ...] = ()
    peripherals: tuple[Peripheral, ...] = ()
    pinouts: tuple[Pinout, ...] = ()
    timers: tuple[Timer, ...] = ()
    clock: Optional[ClockInfo] = None
    electrical: Optional[ElectricalParameters] = None
    legacy: Optional[LegacySpecs] = None

    def peripheral(self, name: str) -> Optional[Peripheral]:
        for p in self.peripherals:
            if p.name.upper() == name.upper():
                return p
        return None


@dataclass(frozen=True)
class Pack:
    metadata: PackMetadata
    version: str
    devices: tuple[Device, ...] = ()

    def device(self, name: str) -> Optional[Device]:
        for d in self.devices:
            if d.name.upper() == name.upper():
                return d
        return None
