"""Stateless datagram decoder for Forza telemetry packets."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping

import numpy as np

from .schema import FieldKind, Schema

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Clock = Callable[[], datetime]


class DecodeError(ValueError):
    """Packet cannot be decoded with the given schema."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DecodedSample:
    event_time: datetime
    fields: dict[str, np.generic]
    valid: bool
    timestamp_ms: int | None = None
    engine_rpm: float | None = None
    raw: bytes = field(default=b"", repr=False)


def _read(data: bytes, kind: FieldKind, offset: int) -> np.generic:
    return np.frombuffer(data, dtype=kind.dtype, count=1, offset=offset)[0]


def decode_packet(schema: Schema, data: bytes,
                  clock: Clock | None = None) -> DecodedSample:
    """Decode one datagram into a :class:`DecodedSample`.

    Every scalar field is emitted under its schema name as a numpy scalar of
    its wire width (``uint8`` stays distinct from ``uint32`` and ``float32``).
    ``hzn`` blocks are covered by the length check but never emitted.

    ``TimestampMS`` sets ``event_time`` to that many milliseconds after the
    Unix epoch; without it ``event_time`` is taken from ``clock`` now.
    A ``CurrentEngineRpm`` of exactly zero marks the sample invalid: the game
    keeps sending zero-RPM packets while paused, rewinding or in menus.
    """
    data = bytes(data)
    if len(data) < schema.size:
        raise DecodeError(
            f"packet too short: {len(data)} bytes, schema {schema.source} "
            f"needs {schema.size}")

    fields: dict[str, np.generic] = {}
    for f in schema:
        if f.kind.is_scalar:
            fields[f.name] = _read(data, f.kind, f.start)

    timestamp_ms = None
    if schema.timestamp_index is not None:
        ts = schema[schema.timestamp_index]
        timestamp_ms = int(_read(data, ts.kind, ts.start))
        event_time = EPOCH + timedelta(milliseconds=timestamp_ms)
    else:
        event_time = (clock or utcnow)()

    engine_rpm = None
    if schema.rpm_index is not None:
        rpm = schema[schema.rpm_index]
        engine_rpm = float(_read(data, rpm.kind, rpm.start))

    return DecodedSample(
        event_time=event_time,
        fields=fields,
        valid=engine_rpm != 0.0,
        timestamp_ms=timestamp_ms,
        engine_rpm=engine_rpm,
        raw=data,
    )


class PacketDecoder:
    """Decoder bound to one schema and its decode-time options.

    ``debug`` is fixed at construction; when set, every field chunk is
    logged as it is decoded.
    """

    def __init__(self, schema: Schema, debug: bool = False,
                 clock: Clock | None = None):
        self.schema = schema
        self.debug = debug
        self.clock = clock or utcnow

    def decode(self, data: bytes) -> DecodedSample:
        sample = decode_packet(self.schema, data, self.clock)
        if self.debug:
            for f in self.schema:
                logger.debug("Data chunk %d: %s (%s) (%s)", f.position,
                             data[f.start:f.end].hex(" "), f.name, f.kind.value)
        return sample


def build_packet(schema: Schema, values: Mapping[str, Any]) -> bytes:
    """Pack ``values`` at their schema offsets; missing fields are zero."""
    buf = bytearray(schema.size)
    for f in schema:
        if f.name not in values:
            continue
        value = values[f.name]
        if f.kind is FieldKind.HZN:
            raw = bytes(value)
            if len(raw) != f.size:
                raise ValueError(
                    f"{f.name}: expected {f.size} bytes, got {len(raw)}")
        else:
            raw = np.array(value, dtype=f.kind.dtype).tobytes()
        buf[f.start:f.end] = raw
    return bytes(buf)
