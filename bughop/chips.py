"""
Chip primitives for the Bughop machine.

Models the two physical parts the VM is built from: a flat byte RAM whose
cells saturate instead of wrapping, and the FIFO behind the SND port.
"""

from __future__ import annotations

import collections
from typing import Callable

BYTE_MIN = 0
BYTE_MAX = 0xFF


def clamp_byte(val: int) -> int:
    """Saturate an integer into the 0..255 range."""
    if val < BYTE_MIN:
        return BYTE_MIN
    if val > BYTE_MAX:
        return BYTE_MAX
    return val


class ClampedRAM:
    """
    Byte-addressable RAM with saturating writes.

    Writing 300 stores 255, writing -4 stores 0. Reads outside the array
    return 0 and writes outside it are dropped, so a runaway address can
    never raise.
    """

    def __init__(self, size: int):
        self.size = size
        self.data = bytearray(size)

    def read(self, addr: int) -> int:
        if 0 <= addr < self.size:
            return self.data[addr]
        return 0

    def write(self, addr: int, val: int):
        if 0 <= addr < self.size:
            self.data[addr] = clamp_byte(val)

    def snapshot(self) -> bytes:
        return bytes(self.data)

    def restore(self, image: bytes | bytearray):
        """Replace the whole contents. No validation beyond length."""
        if len(image) != self.size:
            raise ValueError(f"Expected {self.size} bytes, got {len(image)}")
        self.data[:] = image

    def clear(self):
        self.data[:] = bytes(self.size)

    def __len__(self) -> int:
        return self.size


class FIFO:
    """Output port buffer. Oldest bytes fall off when full."""

    def __init__(self, depth: int = 16):
        self.buffer: collections.deque[int] = collections.deque(maxlen=depth)
        self.listeners: list[Callable[[int], None]] = []

    def push(self, byte: int):
        byte &= 0xFF
        self.buffer.append(byte)
        for listener in self.listeners:
            listener(byte)

    def pop(self) -> int | None:
        return self.buffer.popleft() if self.buffer else None

    def clear(self):
        self.buffer.clear()

    def __len__(self) -> int:
        return len(self.buffer)
