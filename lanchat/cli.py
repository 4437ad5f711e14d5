import argparse
import logging
import sys
from typing import TextIO

from .config import DEFAULT_DISCOVERY_PORT, DEFAULT_STREAM_PORT, HEARTBEAT_INTERVAL, NodeConfig
from .network import parse_address
from .node import ChatNode

EXAMPLES = """\
Example for testing on single machine:
  lanchat 127.0.0.1 Alice
  lanchat 127.0.0.2 Bob
  lanchat 127.0.0.3 Charlie
"""


def _address(text: str) -> str:
    try:
        return parse_address(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid IP address: {text}")


def _port(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid port: {text}")
    if not 0 <= value <= 65535:
        raise argparse.ArgumentTypeError(f"Port out of range: {text}")
    return value


def _interval(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid interval: {text}")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"Interval must be positive: {text}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lanchat",
        description="Serverless chat between nodes on one LAN segment",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("address", type=_address, help="Local IPv4 address to bind")
    parser.add_argument("name", help="Display name announced to peers")
    parser.add_argument(
        "--uport",
        "--discovery-port",
        dest="discovery_port",
        type=_port,
        default=DEFAULT_DISCOVERY_PORT,
        help=f"UDP discovery port (default: {DEFAULT_DISCOVERY_PORT})",
    )
    parser.add_argument(
        "--tport",
        "--stream-port",
        dest="stream_port",
        type=_port,
        default=DEFAULT_STREAM_PORT,
        help=f"TCP message port (default: {DEFAULT_STREAM_PORT})",
    )
    parser.add_argument(
        "--interval",
        type=_interval,
        default=HEARTBEAT_INTERVAL,
        help="Seconds between presence announcements",
    )
    parser.add_argument("--dashboard-port", type=_port, help="Serve the HTTP dashboard on this port")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def run_console(node: ChatNode, stream: TextIO) -> None:
    """Read lines from ``stream`` until EOF or ``exit``."""
    for raw in stream:
        line = raw.rstrip("\r\n")
        if line.lower() == "exit":
            break
        if not line:
            continue
        node.broadcast(line)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.name:
        parser.error("name must not be empty")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = NodeConfig(
        args.address,
        args.name,
        discovery_port=args.discovery_port,
        stream_port=args.stream_port,
        heartbeat_interval=args.interval,
    )
    node = ChatNode(config)
    try:
        node.start()
    except OSError as exc:
        print(f"Could not start node on {args.address}: {exc}", file=sys.stderr)
        return 1

    try:
        print(f"Chat node started as {args.name} on {args.address}. Type messages and press Enter to send.")
        print(f"Using TCP port: {args.stream_port}, UDP port: {args.discovery_port}")
        print("Type 'exit' to quit.", flush=True)
        if args.dashboard_port is not None:
            from .dashboard import serve_dashboard

            serve_dashboard(node, args.address, args.dashboard_port)
        run_console(node, sys.stdin)
    except KeyboardInterrupt:
        pass
    finally:
        node.stop()
    return 0


__all__ = ["main", "build_parser", "run_console"]
