"""Test packet-format compilation.

Run from the repo root:
    python3 tests/test_schema.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "python"))

import tempfile

import pytest

from forzatelem.schema import (
    FORMATS, FieldKind, SchemaError, bundled_schema, compile_schema, load_schema,
)


def test_compile_offsets():
    """Fields are laid out back to back in line order."""
    print("test_compile_offsets...", end="")

    schema = compile_schema([
        "s32 IsRaceOn",
        "u32 TimestampMS",
        "f32 CurrentEngineRpm",
        "u16 LapNumber",
        "u8 Gear",
        "s8 Steer",
        "hzn Unknown",
        "f32 Speed",
    ])

    assert len(schema) == 8
    assert schema[0].start == 0
    for prev, cur in zip(schema.fields, schema.fields[1:]):
        assert cur.start == prev.end
    assert [f.position for f in schema] == list(range(8))
    assert [(f.start, f.end) for f in schema] == [
        (0, 4), (4, 8), (8, 12), (12, 14), (14, 15), (15, 16), (16, 28), (28, 32),
    ]
    assert schema.size == 32
    assert schema.field("Unknown").kind is FieldKind.HZN
    assert schema.field("Unknown").size == 12

    print(" OK")


def test_comments_and_whitespace():
    """Text after ';' is dropped and tokens split on any whitespace."""
    print("test_comments_and_whitespace...", end="")

    schema = compile_schema([
        "s32 IsRaceOn; = 1 when race is on. = 0 when in menus/race stopped",
        "u32\tTimestampMS ;Can overflow to 0 eventually",
        "  f32   Speed  ",
    ])

    assert schema.names == ["IsRaceOn", "TimestampMS", "Speed"]
    assert schema[1].kind is FieldKind.U32
    assert schema.size == 12

    print(" OK")


def test_reserved_indices():
    """Reserved fields are resolved to positions at compile time."""
    print("test_reserved_indices...", end="")

    schema = compile_schema(["u8 Gear", "f32 CurrentEngineRpm", "u32 TimestampMS"])
    assert schema.rpm_index == 1
    assert schema.timestamp_index == 2

    schema = compile_schema(["u8 Gear"])
    assert schema.rpm_index is None
    assert schema.timestamp_index is None

    print(" OK")


def test_unknown_type():
    """An unknown type token aborts compilation and names the line."""
    print("test_unknown_type...", end="")

    with pytest.raises(SchemaError, match="line 2") as exc:
        compile_schema(["u8 Gear", "f64 Speed", "u8 Accel"])
    assert "f64" in str(exc.value)

    print(" OK")


def test_malformed_lines():
    """Blank lines and lines without exactly two tokens are rejected."""
    print("test_malformed_lines...", end="")

    for bad in ["", "   ", "u8", "u8 Gear Extra", "; only a comment"]:
        with pytest.raises(SchemaError):
            compile_schema(["u8 Gear", bad])

    print(" OK")


def test_empty_schema():
    print("test_empty_schema...", end="")

    schema = compile_schema([])
    assert len(schema) == 0
    assert schema.size == 0

    print(" OK")


def test_load_schema_file():
    print("test_load_schema_file...", end="")

    with tempfile.NamedTemporaryFile("w", suffix=".dat", delete=False) as f:
        f.write("u32 TimestampMS\nf32 CurrentEngineRpm\nu8 Gear\n")
        tmppath = f.name

    try:
        schema = load_schema(tmppath)
        assert schema.names == ["TimestampMS", "CurrentEngineRpm", "Gear"]
        assert schema.size == 9
        assert schema.source == tmppath
    finally:
        os.unlink(tmppath)

    print(" OK")


def test_bundled_formats():
    """The shipped FM7 and FH4 formats compile to the game packet sizes."""
    print("test_bundled_formats...", end="")

    fm7 = bundled_schema(FORMATS["motorsport"])
    assert fm7.size == 311
    assert fm7.timestamp_index == 1
    assert fm7.rpm_index == 4

    fh4 = bundled_schema(FORMATS["horizon"])
    assert fh4.size == 323
    assert fh4.field("HorizonPlaceholder").kind is FieldKind.HZN
    # dash section shifted by the 12-byte block
    assert fh4.field("PositionX").start == fm7.field("PositionX").start + 12
    assert fh4.names[-1] == "NormalizedAIBrakeDifference"

    print(" OK")


if __name__ == "__main__":
    print("forzatelem schema tests")
    print("=======================\n")

    test_compile_offsets()
    test_comments_and_whitespace()
    test_reserved_indices()
    test_unknown_type()
    test_malformed_lines()
    test_empty_schema()
    test_load_schema_file()
    test_bundled_formats()

    print("\nAll tests passed.")
