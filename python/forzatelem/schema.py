"""Schema parsing: text field layouts to byte-offset descriptor tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from importlib import resources
from pathlib import Path
from typing import Iterable, Iterator

import numpy as np

logger = logging.getLogger(__name__)

# Fields with special meaning to the decoder, wherever they sit in the layout
TIMESTAMP_FIELD = "TimestampMS"
RPM_FIELD = "CurrentEngineRpm"

# Game mode -> bundled schema source
FORMATS = {
    "motorsport": "FM7_packetformat.dat",
    "horizon": "FH4_packetformat.dat",
}


class SchemaError(ValueError):
    """Malformed schema line or unknown type token."""


class FieldKind(str, Enum):
    S32 = "s32"
    U32 = "u32"
    F32 = "f32"
    U16 = "u16"
    U8 = "u8"
    S8 = "s8"
    HZN = "hzn"  # 12 undocumented bytes in the Horizon format

    @property
    def size(self) -> int:
        return _KIND_SIZE[self]

    @property
    def dtype(self) -> np.dtype:
        return _KIND_DTYPE[self]

    @property
    def is_scalar(self) -> bool:
        return self is not FieldKind.HZN


# byte widths and little-endian numpy dtypes indexed by FieldKind
_KIND_SIZE = {
    FieldKind.S32: 4,
    FieldKind.U32: 4,
    FieldKind.F32: 4,
    FieldKind.U16: 2,
    FieldKind.U8: 1,
    FieldKind.S8: 1,
    FieldKind.HZN: 12,
}

_KIND_DTYPE = {
    FieldKind.S32: np.dtype("<i4"),
    FieldKind.U32: np.dtype("<u4"),
    FieldKind.F32: np.dtype("<f4"),
    FieldKind.U16: np.dtype("<u2"),
    FieldKind.U8: np.dtype("u1"),
    FieldKind.S8: np.dtype("i1"),
    FieldKind.HZN: np.dtype("V12"),
}


@dataclass(frozen=True)
class FieldDescriptor:
    position: int
    name: str
    kind: FieldKind
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


class Schema:
    """Compiled packet layout: an ordered, read-only table of field descriptors."""

    def __init__(self, fields: Iterable[FieldDescriptor] = (),
                 source: str = "<schema>"):
        self._fields: tuple[FieldDescriptor, ...] = tuple(fields)
        self.source = source
        self._by_name = {f.name: f for f in self._fields}
        self.timestamp_index = self._reserved_index(TIMESTAMP_FIELD)
        self.rpm_index = self._reserved_index(RPM_FIELD)

    def _reserved_index(self, name: str) -> int | None:
        # last scalar field of that name, matching the decoded mapping
        for f in reversed(self._fields):
            if f.name == name and f.kind.is_scalar:
                return f.position
        return None

    @property
    def fields(self) -> tuple[FieldDescriptor, ...]:
        return self._fields

    @property
    def size(self) -> int:
        """Minimum packet length: the end of the last field."""
        return self._fields[-1].end if self._fields else 0

    @property
    def names(self) -> list[str]:
        return [f.name for f in self._fields]

    def field(self, name: str) -> FieldDescriptor:
        return self._by_name[name]

    def __len__(self) -> int:
        return len(self._fields)

    def __iter__(self) -> Iterator[FieldDescriptor]:
        return iter(self._fields)

    def __getitem__(self, index: int) -> FieldDescriptor:
        return self._fields[index]

    def __repr__(self) -> str:
        return f"Schema({self.source!r}, fields={len(self)}, size={self.size})"


def compile_schema(lines: Iterable[str], source: str = "<schema>") -> Schema:
    """Compile ``<type> <name>[;comment]`` lines into a :class:`Schema`.

    Line order is field order: each field starts where the previous one ends.
    Raises :class:`SchemaError` on the first malformed line or unknown type,
    since every later offset would be wrong.
    """
    fields: list[FieldDescriptor] = []
    seen: set[str] = set()
    offset = 0

    for i, line in enumerate(lines):
        tokens = line.split(";", 1)[0].split()
        if len(tokens) != 2:
            raise SchemaError(
                f"{source} line {i + 1}: expected '<type> <name>', got {line!r}")
        type_token, name = tokens

        try:
            kind = FieldKind(type_token)
        except ValueError:
            raise SchemaError(
                f"{source} line {i + 1}: unknown data type {type_token!r} "
                f"in {line!r}") from None

        if name in seen:
            logger.warning("%s line %d: duplicate field name %s",
                           source, i + 1, name)
        seen.add(name)

        f = FieldDescriptor(i, name, kind, offset, offset + kind.size)
        fields.append(f)
        offset = f.end
        logger.debug("Processed %s line %d: %s (%s), byte offset: %d:%d",
                     source, i, f.name, f.kind.value, f.start, f.end)

    schema = Schema(fields, source)
    logger.info("Processed %d telemetry fields (%d bytes) from %s",
                len(schema), schema.size, source)
    return schema


def load_schema(path: str | Path) -> Schema:
    """Read and compile a schema file."""
    text = Path(path).read_text(encoding="utf-8")
    return compile_schema(text.splitlines(), source=str(path))


def bundled_schema(name: str) -> Schema:
    """Compile one of the packet formats shipped in ``forzatelem/formats``."""
    ref = resources.files(__package__) / "formats" / name
    text = ref.read_text(encoding="utf-8")
    return compile_schema(text.splitlines(), source=name)
