"""
Command-line interface: scan for renderers and control one of them.

    dlna-control discover --timeout 5
    dlna-control play "Living Room TV" http://192.168.1.10:8000/track.mp3 --title "Song A"
    dlna-control volume "Living Room TV" 30
"""

import argparse
import json
import logging
import sys
from typing import List, Optional, Sequence

from . import __version__, config
from .engine import UPnPEngine
from .errors import DLNAControlError

logger = logging.getLogger(__name__)


def _find_device(engine: UPnPEngine, name_or_id: str) -> str:
    """Return the id of the device whose id or friendly name matches."""
    devices = engine.get_discovered_devices()
    for device in devices:
        if device["id"] == name_or_id:
            return device["id"]
    wanted = name_or_id.lower()
    for device in devices:
        if device["name"].lower() == wanted:
            return device["id"]
    # Names are only known after resolving descriptions
    for device in devices:
        try:
            summary = engine.connect(device["id"])
        except DLNAControlError as e:
            logger.debug("Skipping %s: %s", device["id"], e)
            continue
        if summary["name"].lower() == wanted:
            return summary["id"]
    raise SystemExit(f"No renderer named {name_or_id!r} found")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dlna-control", description="Discover and control DLNA/UPnP media renderers")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--timeout", type=float, default=config.SCAN_WINDOW, help="Discovery scan window in seconds"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_discover = subparsers.add_parser("discover", help="List media renderers on the network")
    p_discover.add_argument("--resolve", action="store_true", help="Fetch each device description")
    p_discover.add_argument("--json", action="store_true", help="Print JSON instead of a table")

    p_play = subparsers.add_parser("play", help="Play a media URL on a renderer")
    p_play.add_argument("device", help="Device id or friendly name")
    p_play.add_argument("url", help="Media URL reachable by the renderer")
    p_play.add_argument("--title", default="", help="Title shown on the renderer")

    for command in ("pause", "stop"):
        p = subparsers.add_parser(command, help=f"{command.capitalize()} playback on a renderer")
        p.add_argument("device", help="Device id or friendly name")

    p_volume = subparsers.add_parser("volume", help="Get or set a renderer's volume")
    p_volume.add_argument("device", help="Device id or friendly name")
    p_volume.add_argument("level", nargs="?", type=int, help="New volume 0-100; omit to query")

    return parser


def run(args: argparse.Namespace, engine: UPnPEngine) -> int:
    devices: List[dict] = engine.discover(timeout=args.timeout)

    if args.command == "discover":
        if args.resolve:
            resolved = []
            for device in devices:
                try:
                    resolved.append(engine.connect(device["id"]))
                except DLNAControlError as e:
                    logger.warning("Could not resolve %s: %s", device["id"], e)
                    resolved.append(device)
            devices = resolved
        if args.json:
            print(json.dumps(devices, indent=2))
        else:
            for device in devices:
                print(f"{device['name']:<32} {device['ip']:<16} {device['id']}")
            print(f"{len(devices)} renderer(s) found")
        return 0

    device_id = _find_device(engine, args.device)
    if args.command == "play":
        engine.play_media(device_id, args.url, args.title or args.url.rsplit("/", 1)[-1])
    elif args.command == "pause":
        engine.pause(device_id)
    elif args.command == "stop":
        engine.stop(device_id)
    elif args.command == "volume":
        if args.level is None:
            print(engine.get_volume(device_id)["volume"])
        else:
            print(engine.set_volume(device_id, args.level)["volume"])
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    engine = UPnPEngine()
    try:
        return run(args, engine)
    except DLNAControlError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        engine.stop_discovery()


if __name__ == "__main__":
    sys.exit(main())
