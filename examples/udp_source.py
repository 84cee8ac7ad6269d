#!/usr/bin/env python3
"""Generate synthetic Forza Motorsport 7 telemetry over UDP.

Sends dash-format datagrams to localhost:43110, pausing every few seconds
with zero engine RPM the way the game does in menus.

Usage:
    forzatelem listen --dry-run

Then in another terminal:
    python examples/udp_source.py
"""

import math
import random
import socket
import time

from forzatelem.schema import FORMATS, bundled_schema
from forzatelem.decoder import build_packet

schema = bundled_schema(FORMATS["motorsport"])


def make_values(t: float, ts_ms: int) -> dict[str, float | int]:
    """One packet worth of telemetry at time t (seconds)."""
    paused = math.fmod(t, 20.0) > 17.0
    rpm = 0.0 if paused else 4000.0 + 2500.0 * math.sin(2 * math.pi * t / 6.0)
    speed = 0.0 if paused else 40.0 + 10.0 * math.sin(2 * math.pi * t / 12.0)
    return {
        "IsRaceOn": 0 if paused else 1,
        "TimestampMS": ts_ms,
        "EngineMaxRpm": 8000.0,
        "EngineIdleRpm": 800.0,
        "CurrentEngineRpm": rpm,
        "Speed": speed + random.gauss(0, 0.2),
        "Gear": 1 + int(speed // 12),
        "Accel": 0 if paused else 200,
        "Steer": random.randint(-20, 20),
        "LapNumber": int(t // 60),
    }


def send(host: str = "127.0.0.1", port: int = 43110, rate_hz: float = 60.0):
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    print(f"Sending to {host}:{port} at {rate_hz} Hz  (Ctrl-C to stop)")
    t0 = time.monotonic()
    seq = 0
    try:
        while True:
            t = time.monotonic() - t0
            sock.sendto(build_packet(schema, make_values(t, int(t * 1000))),
                        (host, port))
            seq += 1
            if seq % int(rate_hz) == 0:
                print(f"  sent {seq} packets ({t:.1f}s)")
            time.sleep(1.0 / rate_hz)
    except KeyboardInterrupt:
        print("\nShutting down.")
    finally:
        sock.close()


if __name__ == "__main__":
    send()
