"""Receive, decode and forward loop."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .decoder import Clock, DecodeError, PacketDecoder, utcnow
from .sink import DEFAULT_MEASUREMENT, Record, RecordSink
from .transport import Transport, TransportError

logger = logging.getLogger(__name__)

# delay after consecutive receive errors: doubles from BACKOFF_MIN up to BACKOFF_MAX
BACKOFF_MIN = 0.05
BACKOFF_MAX = 2.0


class TimestampPolicy(str, Enum):
    PACKET = "packet"    # time derived from TimestampMS
    FORWARD = "forward"  # wall clock when the record is written


class ErrorPolicy(str, Enum):
    CONTINUE = "continue"
    FATAL = "fatal"


@dataclass
class ListenerStats:
    received: int = 0
    forwarded: int = 0
    idle: int = 0
    errors: int = 0


class Listener:
    """Sequential receive -> decode -> forward pipeline.

    Records reach the sink in the order their datagrams were received.
    Samples that fail the liveness check are dropped before the sink.
    """

    def __init__(self, transport: Transport, decoder: PacketDecoder,
                 sink: RecordSink,
                 timestamp_policy: TimestampPolicy = TimestampPolicy.FORWARD,
                 error_policy: ErrorPolicy = ErrorPolicy.CONTINUE,
                 measurement: str = DEFAULT_MEASUREMENT,
                 clock: Clock | None = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.transport = transport
        self.decoder = decoder
        self.sink = sink
        self.timestamp_policy = timestamp_policy
        self.error_policy = error_policy
        self.measurement = measurement
        self.clock = clock or utcnow
        self.sleep = sleep
        self.stats = ListenerStats()
        self._failures = 0
        self._running = False

    def handle(self, data: bytes) -> Record | None:
        """Decode one datagram and forward it if valid.

        Returns the record written, or None if the packet was dropped.
        """
        self.stats.received += 1
        try:
            sample = self.decoder.decode(data)
        except DecodeError as e:
            self.stats.errors += 1
            if self.error_policy is ErrorPolicy.FATAL:
                raise
            logger.warning("Dropping packet: %s", e)
            return None

        if not sample.valid:
            self.stats.idle += 1
            return None

        if self.timestamp_policy is TimestampPolicy.PACKET:
            time = sample.event_time
        else:
            time = self.clock()
        record = Record.from_sample(sample, time, self.measurement)
        self.sink.write(record)
        self.stats.forwarded += 1
        return record

    def poll(self) -> Record | None:
        """Receive at most one datagram and handle it."""
        try:
            data, addr = self.transport.read()
        except TransportError:
            self.stats.errors += 1
            if self.error_policy is ErrorPolicy.FATAL:
                raise
            self._failures += 1
            if self._failures == 1:
                logger.exception("transport read failed")
            else:
                logger.warning("transport read failed %d times in a row",
                               self._failures)
            self.sleep(min(BACKOFF_MIN * 2 ** (self._failures - 1), BACKOFF_MAX))
            return None
        self._failures = 0
        if not data:
            return None
        if self.decoder.debug:
            logger.debug("UDP client connected: %s", addr)
        return self.handle(data)

    def serve_forever(self) -> None:
        self._running = True
        try:
            while self._running:
                self.poll()
        except KeyboardInterrupt:
            pass
        finally:
            s = self.stats
            logger.info("Received %d packets: %d forwarded, %d idle, %d errors",
                        s.received, s.forwarded, s.idle, s.errors)

    def stop(self) -> None:
        self._running = False
