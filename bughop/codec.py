"""
Level codec: run-length pairs and the bracketed literal used for export.

A memory image is mostly zeros, so levels are stored as (value, run)
pairs. Runs are capped at 255 to keep every number a byte.
"""

from __future__ import annotations

import re

from .machine import CYC, STA, RUNNING

MAX_RUN = 0xFF

_LITERAL_RE = re.compile(r"^\s*\[?\s*([0-9\s,]*?)\s*,?\s*\]?\s*$")


def encode_rle(data: bytes | bytearray) -> list[int]:
    """Flatten data into [value, run, value, run, ...]."""
    pairs: list[int] = []
    i = 0
    n = len(data)
    while i < n:
        value = data[i]
        run = 1
        while i + run < n and data[i + run] == value and run < MAX_RUN:
            run += 1
        pairs.extend((value, run))
        i += run
    return pairs


def decode_rle(pairs: list[int] | tuple[int, ...]) -> bytes:
    if len(pairs) % 2:
        raise ValueError(f"RLE data must be (value, run) pairs, got {len(pairs)} numbers")
    out = bytearray()
    for i in range(0, len(pairs), 2):
        value, run = pairs[i], pairs[i + 1]
        if not 0 <= value <= 0xFF:
            raise ValueError(f"RLE value out of byte range at position {i}: {value}")
        if run < 0:
            raise ValueError(f"RLE run must not be negative at position {i + 1}: {run}")
        out.extend(bytes((value,)) * run)
    return bytes(out)


def format_literal(values: list[int] | bytes) -> str:
    return "[" + ",".join(str(v) for v in values) + "]"


def parse_literal(text: str) -> list[int]:
    """Inverse of format_literal. Accepts whitespace and a trailing comma."""
    m = _LITERAL_RE.match(text)
    if m is None:
        raise ValueError(f"Not a number list: {text[:40]!r}")
    body = m.group(1).replace(",", " ")
    return [int(tok) for tok in body.split()]


def export_memory(image: bytes | bytearray) -> bytes:
    """Copy of image that starts from scratch: zero cycles, RUNNING."""
    out = bytearray(image)
    out[CYC] = 0
    out[STA] = RUNNING
    return bytes(out)


def encode_level(image: bytes | bytearray) -> str:
    """Exported, run-length encoded literal, ready to paste into a level."""
    return format_literal(encode_rle(export_memory(image)))


def decode_level(text: str) -> bytes:
    return decode_rle(parse_literal(text))
