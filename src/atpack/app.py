from __future__ import annotations

import dataclasses
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Optional, TextIO

from ruamel.yaml import YAML

from atpack.errors import AtPackError
from atpack.loader import load_pack_dir
from atpack.model.device import Device, Pack
from atpack.utils.logger import get_logger, setup_logging

log = get_logger(__name__)


def to_plain(obj: Any) -> Any:
    """Dataclass model -> dicts, lists and scalars the YAML dumper accepts."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_plain(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {k: to_plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_plain(v) for v in obj]
    return obj


def dump_yaml(obj: Any, out: TextIO) -> None:
    yaml = YAML()
    yaml.indent(mapping=2, sequence=4, offset=2)
    yaml.dump(to_plain(obj), out)


def _size(n: int) -> str:
    return f"{n // 1024} KiB" if n >= 1024 and n % 1024 == 0 else f"{n} B"


def summarize(device: Device) -> str:
    mem = device.memory
    lines = [
        f"{device.name}  [{device.device_family.value}]  family={device.family or '?'}  arch={device.architecture or '?'}",
        f"  flash  0x{mem.flash.start:06X} {_size(mem.flash.size)}",
        f"  sram   0x{mem.sram.start:06X} {_size(mem.sram.size)}",
    ]
    if mem.eeprom is not None:
        lines.append(f"  eeprom 0x{mem.eeprom.start:06X} {_size(mem.eeprom.size)}")
    if device.signatures:
        lines.append("  signature " + " ".join(f"{s.value:02X}" for s in device.signatures))
    for reg in device.fuses:
        default = "?" if reg.default_value is None else f"0x{reg.default_value & 0xFFFFFFFF:X}"
        lines.append(f"  fuse {reg.name:<12} @0x{reg.offset:X} default={default} fields={len(reg.bitfields)}")
    lines.append(
        f"  {len(device.lockbits)} lockbit reg(s), {len(device.interrupts)} interrupt(s), "
        f"{len(device.peripherals)} peripheral(s), {len(device.pinouts)} pinout(s), {len(device.timers)} timer(s)"
    )
    return "\n".join(lines)


def run_app(
    pack_dir: Path,
    device: Optional[str],
    dump: Optional[str],
    log_level: str,
    quiet: bool,
) -> int:
    setup_logging(level=log_level, quiet=quiet)

    log.info("atpack starting")
    log.info("Pack: %s", pack_dir)

    try:
        pack: Pack = load_pack_dir(pack_dir)
    except AtPackError as exc:
        log.error("%s", exc)
        return 1

    selected = pack.devices
    if device:
        found = pack.device(device)
        if found is None:
            log.error("device %s not in pack %s", device, pack.metadata.name)
            return 1
        selected = (found,)

    if dump == "yaml":
        dump_yaml(selected[0] if device else pack, sys.stdout)
        return 0

    print(f"{pack.metadata.vendor} {pack.metadata.name} {pack.version}")
    for d in selected:
        print(summarize(d))
    return 0
