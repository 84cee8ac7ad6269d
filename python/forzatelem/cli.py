"""forzatelem command-line tool."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import datetime

from .schema import FORMATS, Schema, SchemaError, bundled_schema, load_schema
from .decoder import DecodeError, DecodedSample, PacketDecoder
from .listener import ErrorPolicy, Listener, TimestampPolicy
from .sink import DEFAULT_MEASUREMENT, InfluxSink, LogSink, RecordSink
from .transport import DEFAULT_HOST, DEFAULT_PORT, UDPTransport, get_outbound_ip

logger = logging.getLogger(__name__)


class MicrosecondFormatter(logging.Formatter):
    """Log timestamps as HH:MM:SS.ffffff."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        ts = datetime.fromtimestamp(record.created)
        return ts.strftime(datefmt or "%H:%M:%S.%f")


def _setup_logging(debug: bool) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(MicrosecondFormatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO,
                        handlers=[handler])


def _load(args: argparse.Namespace) -> Schema:
    if args.schema_file:
        return load_schema(args.schema_file)
    if args.horizon:
        logger.info("Forza Horizon mode selected")
        return bundled_schema(FORMATS["horizon"])
    logger.info("Forza Motorsport mode selected")
    return bundled_schema(FORMATS["motorsport"])


def _format_sample(sample: DecodedSample) -> str:
    fields_str = ", ".join(f"{k}={v}" for k, v in sample.fields.items())
    flag = "" if sample.valid else " (idle)"
    return f"[{sample.event_time.isoformat()}]{flag} {fields_str}"


def cmd_schema(args: argparse.Namespace) -> None:
    """Print the compiled offset table."""
    schema = _load(args)
    print(f"{schema.source}: {len(schema)} fields, {schema.size} bytes")
    for f in schema:
        print(f"  {f.position:3d}  {f.name:40s} {f.kind.value:4s} "
              f"offset={f.start:3d}:{f.end:<3d}")


def cmd_decode(args: argparse.Namespace) -> None:
    """Decode a raw packet captured to a file."""
    schema = _load(args)
    decoder = PacketDecoder(schema, debug=args.debug)
    with open(args.file, "rb") as f:
        data = f.read()
    print(_format_sample(decoder.decode(data)))


def _make_sink(args: argparse.Namespace) -> RecordSink:
    if args.dry_run:
        return LogSink()
    if not args.influx_token:
        print("Error: --influx-token or INFLUX_TOKEN required "
              "(or use --dry-run)", file=sys.stderr)
        sys.exit(1)
    return InfluxSink(args.influx_url, args.influx_token, args.org, args.bucket)


def cmd_listen(args: argparse.Namespace) -> None:
    """Receive telemetry over UDP and forward it to the sink."""
    schema = _load(args)
    transport = UDPTransport(args.host, args.port)
    sink = _make_sink(args)
    listener = Listener(
        transport,
        PacketDecoder(schema, debug=args.debug),
        sink,
        timestamp_policy=TimestampPolicy(args.timestamp),
        error_policy=ErrorPolicy.FATAL if args.fail_fast else ErrorPolicy.CONTINUE,
        measurement=args.measurement,
    )
    logger.info("Forza data out server listening on %s:%d, "
                "waiting for Forza data...", get_outbound_ip(), args.port)
    try:
        listener.serve_forever()
    finally:
        sink.close()
        transport.close()


def main() -> None:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-z", "--horizon", action="store_true",
                        help="Forza Horizon 4 format (default: Forza Motorsport 7)")
    common.add_argument("--schema-file", help="Packet format file to use instead")
    common.add_argument("-d", "--debug", action="store_true",
                        help="Extra debug information")

    parser = argparse.ArgumentParser(prog="forzatelem",
                                     description="Forza telemetry to InfluxDB")
    sub = parser.add_subparsers(dest="command")

    # listen
    p_listen = sub.add_parser("listen", parents=[common],
                              help="Receive telemetry and write it to InfluxDB")
    p_listen.add_argument("--host", default=DEFAULT_HOST, help="Bind address")
    p_listen.add_argument("--port", type=int, default=DEFAULT_PORT,
                          help="UDP port")
    p_listen.add_argument("--influx-url", default="http://localhost:8086")
    p_listen.add_argument("--influx-token",
                          default=os.environ.get("INFLUX_TOKEN"))
    p_listen.add_argument("--org", default="forza")
    p_listen.add_argument("--bucket", default="telemetry")
    p_listen.add_argument("--measurement", default=DEFAULT_MEASUREMENT)
    p_listen.add_argument("--timestamp", choices=[p.value for p in TimestampPolicy],
                          default=TimestampPolicy.FORWARD.value,
                          help="Record time: packet TimestampMS or forward time")
    p_listen.add_argument("--fail-fast", action="store_true",
                          help="Exit on the first receive or decode error")
    p_listen.add_argument("--dry-run", action="store_true",
                          help="Log records instead of writing them")

    # schema
    sub.add_parser("schema", parents=[common], help="Show the compiled packet format")

    # decode
    p_decode = sub.add_parser("decode", parents=[common],
                              help="Decode a raw packet file")
    p_decode.add_argument("file", help="File holding one datagram")

    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        return

    _setup_logging(args.debug)
    logger.info("Started Forza Data Tools")
    if args.debug:
        logger.debug("Debug mode enabled")

    commands = {"listen": cmd_listen, "schema": cmd_schema, "decode": cmd_decode}
    try:
        commands[args.command](args)
    except (SchemaError, DecodeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
