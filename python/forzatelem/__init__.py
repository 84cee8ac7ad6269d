"""forzatelem - Forza telemetry decoder and InfluxDB forwarder."""

from .schema import (
    Schema, FieldDescriptor, FieldKind, SchemaError,
    compile_schema, load_schema, bundled_schema,
)
from .decoder import DecodedSample, DecodeError, decode_packet, PacketDecoder, build_packet
from .sink import Record, RecordSink, InfluxSink, LogSink
from .listener import Listener, ListenerStats, TimestampPolicy, ErrorPolicy
from .transport import UDPTransport, TransportError

__all__ = [
    "Schema", "FieldDescriptor", "FieldKind", "SchemaError",
    "compile_schema", "load_schema", "bundled_schema",
    "DecodedSample", "DecodeError", "decode_packet", "PacketDecoder", "build_packet",
    "Record", "RecordSink", "InfluxSink", "LogSink",
    "Listener", "ListenerStats", "TimestampPolicy", "ErrorPolicy",
    "UDPTransport", "TransportError",
]
