"""
Tests for the RLE level codec and the bracketed literal.
"""

from __future__ import annotations

import random

import pytest

from bughop import codec
from bughop.machine import BughopMachine, Instruction, CYC, STA, HALTED, NOP, TEQ, RIGHT


def test_encode_rle_pairs():
    assert codec.encode_rle(bytes([0, 0, 0, 7, 1, 1])) == [0, 3, 7, 1, 1, 2]
    assert codec.encode_rle(b"") == []


def test_long_runs_split_at_255():
    pairs = codec.encode_rle(bytes(700))
    assert pairs == [0, 255, 0, 255, 0, 190]
    assert all(v <= 255 for v in pairs)
    assert codec.decode_rle(pairs) == bytes(700)


def test_decode_rle_rejects_bad_input():
    with pytest.raises(ValueError):
        codec.decode_rle([1, 2, 3])
    with pytest.raises(ValueError):
        codec.decode_rle([256, 1])
    with pytest.raises(ValueError):
        codec.decode_rle([1, -1])


def test_zero_run_decodes_to_nothing():
    assert codec.decode_rle([5, 0, 6, 1]) == bytes([6])


def test_parse_literal_is_lenient():
    assert codec.parse_literal("[1,2,3]") == [1, 2, 3]
    assert codec.parse_literal(" [ 1, 2 ,3, ]\n") == [1, 2, 3]
    assert codec.parse_literal("4 5") == [4, 5]
    assert codec.parse_literal("[]") == []
    with pytest.raises(ValueError):
        codec.parse_literal("[1, two]")


def test_format_literal():
    assert codec.format_literal([0, 3, 7, 1]) == "[0,3,7,1]"


def test_export_resets_cycles_and_status():
    image = bytearray(30)
    image[CYC] = 9
    image[STA] = HALTED
    image[5] = 4
    out = codec.export_memory(image)
    assert out[CYC] == 0
    assert out[STA] == 0
    assert out[5] == 4
    assert image[CYC] == 9


def test_level_literal_round_trip():
    m = BughopMachine()
    m.write_instruction(57, Instruction(TEQ, 10, dirs=RIGHT))
    m.write_instruction(58, Instruction(NOP))
    m.set_reg(CYC, 4)
    literal = codec.encode_level(m.dump())
    image = codec.decode_level(literal)
    assert len(image) == 700
    assert image == codec.export_memory(m.dump())
    assert codec.encode_level(image) == literal


def test_raw_literal_round_trip_keeps_cycles_and_status():
    m = BughopMachine()
    m.reset(random.Random(7))
    m.set_reg(CYC, 9)
    m.set_reg(STA, HALTED)
    literal = codec.format_literal(codec.encode_rle(m.dump()))

    other = BughopMachine()
    other.load(codec.decode_level(literal))
    assert other.dump() == m.dump()
    assert other.reg(CYC) == 9
    assert other.halted


def test_rle_round_trip_on_random_bytes():
    rng = random.Random(2024)
    for _ in range(200):
        n = rng.randrange(0, 900)
        # few distinct values so long runs actually occur
        alphabet = rng.sample(range(256), rng.randrange(1, 4))
        data = bytes(rng.choice(alphabet) for _ in range(n))
        pairs = codec.encode_rle(data)
        assert all(0 <= v <= 255 for v in pairs)
        assert codec.decode_rle(pairs) == data
