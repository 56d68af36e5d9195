from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Sequence, Tuple

from atpack.model.device import MemorySegment
from atpack.utils.logger import get_logger

log = get_logger(__name__)


def reconcile_address_space(space: MemorySegment, children: Sequence[MemorySegment]) -> List[MemorySegment]:
    """Display rows for one address-space.

    No segments: the space itself. One segment: just that segment, the
    wrapper adds nothing. Several: the space as an aggregate row followed by
    its segments in document order.
    """
    aggregate = replace(space, is_address_space=True)
    if not children:
        return [aggregate]
    if len(children) == 1:
        return [children[0]]
    return [aggregate, *children]


def segment_issues(space: MemorySegment, children: Sequence[MemorySegment]) -> List[str]:
    issues = []
    for seg in children:
        if seg.size <= 0:
            issues.append(f"{space.name}/{seg.name}: empty segment")
        if seg.start < space.start:
            issues.append(
                f"{space.name}/{seg.name}: starts at 0x{seg.start:X}, "
                f"below address-space start 0x{space.start:X}"
            )
    return issues


def reconcile(spaces: Iterable[Tuple[MemorySegment, Sequence[MemorySegment]]]) -> tuple[MemorySegment, ...]:
    rows: List[MemorySegment] = []
    for space, children in spaces:
        for issue in segment_issues(space, children):
            log.warning("memory: %s", issue)
        rows.extend(reconcile_address_space(space, children))
        log.debug("address-space %s: %d segment(s)", space.name, len(children))
    return tuple(rows)
