#!/usr/bin/env python3
"""Watch Tasmota devices come and go.

Connects to the broker, prints every device as it is discovered together
with its name and IP address, and reports devices that go offline.

Usage
-----
::

    python scripts/discovery.py mqtt.local 1883 user password

Connection settings may also come from ``TASMOTA_MQTT_*`` environment
variables; positional arguments win.
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

from pytasmota import DeviceUpdateKind, TasmotaClient, TasmotaConfig, TasmotaError  # noqa: E402

_LOG = logging.getLogger("discovery")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print Tasmota devices as they come online or go offline")
    parser.add_argument("hostname", nargs="?", help="MQTT broker hostname")
    parser.add_argument("port", nargs="?", type=int, help="MQTT broker port")
    parser.add_argument("username", nargs="?", help="MQTT username")
    parser.add_argument("password", nargs="?", help="MQTT password")
    parser.add_argument("--timeout", type=float, help="Seconds to wait for each device reply")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args()


def _build_config(args: argparse.Namespace) -> TasmotaConfig:
    overrides = {
        "host": args.hostname,
        "port": args.port,
        "username": args.username,
        "password": args.password,
        "command_timeout": args.timeout,
    }
    return TasmotaConfig.from_env(**{k: v for k, v in overrides.items() if v is not None})


async def _describe(client: TasmotaClient, device: str) -> None:
    name, ip = await asyncio.gather(
        client.device_name(device),
        client.device_ip(device),
        return_exceptions=True,
    )
    if isinstance(name, Exception) or isinstance(ip, Exception):
        error = name if isinstance(name, Exception) else ip
        print(f"discovered {device}, but failed to query it: {error}")
        return
    print(f"discovered {name}({device}) with ip {ip}")


async def _run(args: argparse.Namespace) -> int:
    config = _build_config(args)
    pending: set[asyncio.Task[None]] = set()

    async with TasmotaClient(config) as client:
        _LOG.info("Connected to %s:%s", config.host, config.port)
        async for update in client.devices():
            if update.kind == DeviceUpdateKind.ADDED:
                # Query in the background so discovery keeps flowing.
                task = asyncio.create_task(_describe(client, update.device))
                pending.add(task)
                task.add_done_callback(pending.discard)
            else:
                print(f"{update.device} has gone offline")
    return 0


def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return 130
    except TasmotaError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
