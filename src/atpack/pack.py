from __future__ import annotations

from dataclasses import replace
from pathlib import PurePosixPath
from typing import Mapping, Optional, Tuple, Union

from atpack.errors import DocumentError
from atpack.model.device import Device, DeviceFamily, Pack
from atpack.parsers import legacy_family, register_family
from atpack.parsers.document import Document, parse_document
from atpack.parsers.manifest import parse_manifest
from atpack.utils.logger import get_logger

log = get_logger(__name__)

_SUFFIX = {
    DeviceFamily.AVR: ".atdf",
    DeviceFamily.PIC: ".PIC",
}


def document_name(device_name: str, family: DeviceFamily) -> Optional[str]:
    suffix = _SUFFIX.get(family)
    return f"{device_name}{suffix}" if suffix else None


def find_document(documents: Mapping[str, bytes], device_name: str, family: DeviceFamily) -> Optional[str]:
    """Key of the per-device document for device_name, matched on the file name.

    Keys may carry directories (``atdf/ATmega328P.atdf``). Legacy-family
    file names are also matched without regard to case.
    """
    wanted = document_name(device_name, family)
    if wanted is None:
        return None
    by_name = {PurePosixPath(k).name: k for k in documents}
    if wanted in by_name:
        return by_name[wanted]
    if family is DeviceFamily.PIC:
        for name, key in by_name.items():
            if name.lower() == wanted.lower():
                return key
    return None


def locate_document(
    documents: Mapping[str, bytes], device_name: str, family: DeviceFamily
) -> Optional[Tuple[str, DeviceFamily]]:
    """Key of the device's document and the family whose dialect it is in.

    The tagged family's file name is tried first, then the other dialect's.
    """
    for candidate in [family] + [f for f in _SUFFIX if f is not family]:
        key = find_document(documents, device_name, candidate)
        if key is not None:
            return key, candidate
    return None


def enrich(device: Device, data: Union[Document, bytes, str], source: Optional[str] = None) -> Device:
    if device.device_family is DeviceFamily.AVR:
        return register_family.enrich_device(device, data, source=source)
    if device.device_family is DeviceFamily.PIC:
        return legacy_family.enrich_device(device, data, source=source)
    log.warning("%s: unsupported device family, left as skeleton", device.name)
    return device


def load_pack(manifest: Union[bytes, str], documents: Mapping[str, bytes], source: Optional[str] = None) -> Pack:
    """Parse a manifest and enrich each device from its per-device document.

    ``documents`` maps file names (or archive-relative paths) to contents;
    only the documents of listed devices are read from it. A device whose
    document is missing or malformed keeps its manifest skeleton; only a
    malformed manifest raises.
    """
    pack = parse_manifest(parse_document(manifest, source=source))
    log.info("pack %s %s: %d device(s)", pack.metadata.name, pack.version, len(pack.devices))

    devices = []
    for device in pack.devices:
        found = locate_document(documents, device.name, device.device_family)
        if found is None:
            wanted = document_name(device.name, device.device_family) or "per-device"
            log.warning("%s: no %s document in pack", device.name, wanted)
            devices.append(device)
            continue
        key, family = found
        if family is not device.device_family:
            log.warning(
                "%s: tagged %s but pack ships %s, reading it as %s",
                device.name,
                device.device_family.value,
                key,
                family.value,
            )
            device = replace(device, device_family=family)
        try:
            device = enrich(device, documents[key], source=key)
        except DocumentError as exc:
            log.warning("%s: %s", device.name, exc)
        devices.append(device)

    return replace(pack, devices=tuple(devices))
