"""odid command-line tool."""

from __future__ import annotations

import argparse
import logging
import sys
import time

from .collector import Collector, strip_service_prefix
from .decoder import TEXT_ENCODINGS, DecodeResult, decode_messages, frame_from_text
from .messages import BasicId, Location, Message, OperatorID, SelfID
from .storage import CaptureReader, CsvExporter
from .validation import DEFAULT_OPERATOR_IDS, ValidationConfig, validate_messages


def _format_message(msg: Message, device_id: str | None = None) -> str:
    ts_s = msg.observed_at / 1_000_000_000
    src = f"{device_id} " if device_id else ""
    p = msg.payload
    fields_str = ", ".join(f"{k}={v}" for k, v in vars(p).items()
                           if not isinstance(v, bytes))
    extra = ""
    if isinstance(p, BasicId):
        extra = f", uas_id={p.uas_id_text!r} ({p.ua_type_label})"
    elif isinstance(p, SelfID):
        extra = f", description={p.description_text!r}"
    elif isinstance(p, OperatorID):
        extra = f", operator_id={p.operator_id_text!r}"
    elif isinstance(p, Location):
        extra = (f", lat={p.latitude:.7f}, lon={p.longitude:.7f}, "
                 f"alt={p.altitude:.2f}m, hspeed={p.horizontal_speed:.2f}m/s, "
                 f"vspeed={p.vertical_speed:.2f}m/s")
    return (f"[{ts_s:17.6f}] {src}#{msg.sequence_counter} "
            f"{msg.header.type.name} v{msg.header.version}: {fields_str}{extra}")


def _print_result(result: DecodeResult, config: ValidationConfig,
                  device_id: str | None = None) -> None:
    for msg in result.messages:
        print(_format_message(msg, device_id))
    for diag in result.diagnostics:
        print(f"  ! {diag}")
    for kind, warnings in validate_messages(result.messages, config).items():
        for w in warnings:
            print(f"  warning ({kind}): {w}")


def _config_from_args(args: argparse.Namespace) -> ValidationConfig:
    allowed = args.allow_operator or list(DEFAULT_OPERATOR_IDS)
    return ValidationConfig(
        reference_lat=args.ref_lat,
        reference_lon=args.ref_lon,
        max_distance_m=args.max_distance,
        allowed_operator_ids=frozenset(allowed),
    )


def cmd_decode(args: argparse.Namespace) -> int:
    """Decode frames given on the command line."""
    config = _config_from_args(args)
    status = 0
    counter = 0
    for text in args.frame:
        try:
            frame = frame_from_text(text, args.encoding)
        except ValueError as e:
            print(f"error: {e}", file=sys.stderr)
            status = 1
            continue
        if args.strip_prefix:
            frame = strip_service_prefix(frame)
        result = decode_messages(frame, time.time_ns(), counter)
        if not result.messages:
            status = 1
        else:
            counter = result.messages[-1].sequence_counter + 1
        _print_result(result, config)
    return status


def cmd_dump(args: argparse.Namespace) -> int:
    """Decode every frame in a capture file."""
    config = _config_from_args(args)
    collector = Collector(config)
    with CaptureReader(args.file) as reader:
        for cf in reader.frames():
            result = collector.feed(cf.device_id, cf.frame, cf.observed_at)
            _print_result(result, config, cf.device_id)
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    """Decode a capture file and write one CSV line per message."""
    collector = Collector()
    with CaptureReader(args.file) as reader, \
            CsvExporter(args.output, device_column=True) as exporter:
        for cf in reader.frames():
            result = collector.feed(cf.device_id, cf.frame, cf.observed_at)
            exporter.write_all(result.messages, cf.device_id)
        print(f"{exporter.count} messages written to {args.output}")
    return 0


def cmd_summary(args: argparse.Namespace) -> int:
    """Per-device summary of a capture file."""
    config = _config_from_args(args)
    collector = Collector(config)
    with CaptureReader(args.file) as reader:
        for cf in reader.frames():
            collector.feed(cf.device_id, cf.frame, cf.observed_at)

    for device_id, dev in collector.devices.items():
        marker = "* " if dev.valid else "  "
        print(f"{marker}{device_id}")
        for k, v in collector.summary(device_id).items():
            if k != "device_id":
                print(f"    {k:18s} {v}")
        locs = dev.locations()
        if len(locs) > 1:
            print(f"    {'max_altitude':18s} {locs.altitude.max():.2f} m")
            print(f"    {'max_hspeed':18s} {locs.horizontal_speed.max():.2f} m/s")
        if dev.authentication() is not None:
            state = "complete" if dev.auth_complete() else "partial"
            print(f"    {'authentication':18s} {state}")
        for kind, warnings in collector.warnings(device_id).items():
            for w in warnings:
                print(f"    warning ({kind}): {w}")
        print()
    return 0


def cmd_live(args: argparse.Namespace) -> int:
    """Live decode from a receiver transport."""
    from .transport import FrameReader

    if args.serial:
        from .transport import SerialTransport
        transport = SerialTransport(args.serial, baudrate=args.baud)
    elif args.udp:
        from .transport import UDPTransport
        host, port = args.udp.rsplit(":", 1)
        transport = UDPTransport(host, int(port))
    elif args.file:
        from .transport import FileTransport
        transport = FileTransport(args.file)
    else:
        print("Error: specify --serial, --udp, or --file", file=sys.stderr)
        return 1

    config = _config_from_args(args)
    collector = Collector(config, max_messages=args.history)
    reader = FrameReader(encoding=args.encoding)

    try:
        while True:
            data = transport.read(4096)
            if data:
                for device_id, frame in reader.feed(data):
                    result = collector.feed(device_id, frame)
                    _print_result(result, config, device_id)
            elif getattr(transport, "eof", False):
                for device_id, frame in reader.flush():
                    result = collector.feed(device_id, frame)
                    _print_result(result, config, device_id)
                break
            else:
                time.sleep(0.01)
    except KeyboardInterrupt:
        pass
    finally:
        transport.close()
    return 0


def _add_validation_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--ref-lat", type=float, default=ValidationConfig.reference_lat,
                   help="Reference latitude for the distance check")
    p.add_argument("--ref-lon", type=float, default=ValidationConfig.reference_lon,
                   help="Reference longitude for the distance check")
    p.add_argument("--max-distance", type=float,
                   default=ValidationConfig.max_distance_m,
                   help="Distance from reference (m) above which to warn")
    p.add_argument("--allow-operator", action="append", metavar="ID",
                   help="Allowed operator ID (repeatable, replaces the default list)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="odid",
                                     description="Remote ID broadcast decoder")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log decode diagnostics")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Only log errors")
    sub = parser.add_subparsers(dest="command")

    # decode
    p_decode = sub.add_parser("decode", help="Decode hex/base64 frames")
    p_decode.add_argument("frame", nargs="+", help="Frame as hex or base64")
    p_decode.add_argument("--strip-prefix", action="store_true",
                          help="Drop the 2-byte receiver prefix from long frames")
    p_decode.add_argument("--encoding", choices=TEXT_ENCODINGS, default="auto",
                          help="Frame text encoding (auto tries hex first)")
    _add_validation_args(p_decode)

    # dump
    p_dump = sub.add_parser("dump", help="Decode a capture file")
    p_dump.add_argument("file", help="Path to capture file")
    _add_validation_args(p_dump)

    # export
    p_export = sub.add_parser("export", help="Export a capture file as CSV")
    p_export.add_argument("file", help="Path to capture file")
    p_export.add_argument("output", help="CSV output path")

    # summary
    p_summary = sub.add_parser("summary", help="Per-device summary of a capture file")
    p_summary.add_argument("file", help="Path to capture file")
    _add_validation_args(p_summary)

    # live
    p_live = sub.add_parser("live", help="Live decode from a receiver")
    p_live.add_argument("--serial", help="Serial port (e.g. /dev/ttyUSB0)")
    p_live.add_argument("--baud", type=int, default=115200, help="Baud rate")
    p_live.add_argument("--udp", help="UDP host:port to listen on")
    p_live.add_argument("--file", help="Replay frame lines from a file")
    p_live.add_argument("--history", type=int, default=1000,
                        help="Messages kept per device")
    p_live.add_argument("--encoding", choices=TEXT_ENCODINGS, default="auto",
                        help="Frame text encoding (auto tries hex first)")
    _add_validation_args(p_live)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "decode":
        return cmd_decode(args)
    elif args.command == "dump":
        return cmd_dump(args)
    elif args.command == "export":
        return cmd_export(args)
    elif args.command == "summary":
        return cmd_summary(args)
    elif args.command == "live":
        return cmd_live(args)
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
