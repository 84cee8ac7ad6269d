"""Measurement records and the sinks that store them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

import numpy as np
from influxdb_client import InfluxDBClient, Point, WritePrecision

from .decoder import DecodedSample

logger = logging.getLogger(__name__)

DEFAULT_MEASUREMENT = "stat"


@dataclass
class Record:
    time: datetime
    fields: dict[str, Any] = field(default_factory=dict)
    measurement: str = DEFAULT_MEASUREMENT

    @classmethod
    def from_sample(cls, sample: DecodedSample, time: datetime,
                    measurement: str = DEFAULT_MEASUREMENT) -> Record:
        return cls(time, dict(sample.fields), measurement)


class RecordSink(Protocol):
    """Time-series write interface."""

    def write(self, record: Record) -> None: ...
    def close(self) -> None: ...


def _native(value: Any) -> Any:
    """Unwrap numpy scalars into the matching Python number."""
    return value.item() if isinstance(value, np.generic) else value


def to_point(record: Record) -> Point:
    p = Point(record.measurement).time(record.time, WritePrecision.MS)
    for name, value in record.fields.items():
        p = p.field(name, _native(value))
    return p


class InfluxSink:
    """InfluxDB 2.x sink using the client's batching write API.

    Writes are queued and flushed in the background; failures are reported
    by the client, not raised here.
    """

    def __init__(self, url: str, token: str, org: str, bucket: str):
        self.org = org
        self.bucket = bucket
        self._client = InfluxDBClient(url=url, token=token, org=org)
        self._write_api = self._client.write_api()
        logger.info("Writing to InfluxDB %s (org=%s, bucket=%s)",
                    url, org, bucket)

    def write(self, record: Record) -> None:
        self._write_api.write(bucket=self.bucket, org=self.org,
                              record=to_point(record))

    def close(self) -> None:
        self._write_api.close()
        self._client.close()


class LogSink:
    """Logs records in line protocol instead of storing them."""

    def write(self, record: Record) -> None:
        logger.info("%s", to_point(record).to_line_protocol())

    def close(self) -> None:
        pass
