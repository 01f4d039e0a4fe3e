#!/usr/bin/env python3
"""Download the config backup of a Tasmota device.

The backup is written to the current directory under the file name the
device reports (``Config_<name>_<version>.dmp``) unless ``--output`` is
given.

Usage
-----
::

    python scripts/backup.py mqtt.local 1883 user password sonoff-1 device-password
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pytasmota import TasmotaClient, TasmotaConfig, TasmotaError  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Download a Tasmota config backup over MQTT")
    parser.add_argument("hostname", help="MQTT broker hostname")
    parser.add_argument("port", type=int, help="MQTT broker port")
    parser.add_argument("username", help="MQTT username")
    parser.add_argument("password", help="MQTT password")
    parser.add_argument("device", help="Device topic, e.g. sonoff-1")
    parser.add_argument("device_password", help="MQTT password configured on the device")
    parser.add_argument("--output", "-o", help="Write the backup to FILE instead of the reported name")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> int:
    config = TasmotaConfig(
        host=args.hostname,
        port=args.port,
        username=args.username,
        password=args.password,
    )
    async with TasmotaClient(config) as client:
        backup = await client.backup_config(args.device, args.device_password)

    print(f"downloaded {backup.name}")
    target = Path(args.output or backup.name)
    try:
        target.write_bytes(backup.data)
    except OSError as exc:
        print(f"Error while saving {target}: {exc}", file=sys.stderr)
        return 1
    return 0


def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except TasmotaError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
