from __future__ import annotations

from typing import Iterable, Optional, Tuple

# Returned by all_ones() for register sizes it has no table entry for.
ALL_BITS = -1

_ALL_ONES = {
    1: 0xFF,
    2: 0xFFFF,
    3: 0xFFFFFF,
    4: 0xFFFFFFFF,
}


def all_ones(size: int) -> int:
    return _ALL_ONES.get(size, ALL_BITS)


def bit_range_from_mask(mask: int) -> Tuple[int, int]:
    """Return (offset, width) of the lowest contiguous run of set bits in mask.

    A zero mask yields (0, 1). Bits above the first run are ignored, so
    0b1011 gives (0, 2).
    """
    if mask <= 0:
        return 0, 1
    offset = (mask & -mask).bit_length() - 1
    m = mask >> offset
    width = 0
    while m & 1:
        width += 1
        m >>= 1
    return offset, width


def mask_from_range(offset: int, width: int) -> int:
    return ((1 << width) - 1) << offset


def combined_mask(masks: Iterable[int]) -> int:
    acc = 0
    for m in masks:
        acc ^= m
    return acc


def default_register_value(initval: Optional[int], combined: int, size: int) -> int:
    """Default (unprogrammed) value of a fuse-style register.

    An explicit initval wins. Otherwise every bit not claimed by a bitfield
    reads as 1: all_ones(size) & ~combined.
    """
    if initval is not None:
        return initval
    return all_ones(size) & ~combined
