"""
Main command-line interface for pyavrbridge.

This script provides a CLI to manage and control Yamaha AV receivers
kept in a JSON configuration file.
"""

import argparse
import asyncio
import logging
import sys

from pyavrbridge.config import ConfigRecord
from pyavrbridge.exceptions import AvrError
from pyavrbridge.listener import LoggingListener
from pyavrbridge.registry import Registry
from pyavrbridge.storage import JsonConfigStorage


async def list_receivers(config_path: str):
    """Show all configured receivers."""
    registry = Registry(JsonConfigStorage(config_path), start_polling=False)
    await registry.async_start()

    print("\nReceivers:")
    print("-" * 100)
    for record in registry.records():
        print(
            f"{record.id:14s} {record.name:24s} {record.model:10s} {record.address:18s} "
            f"zone {record.active_zone}/{record.zone_count}  max {record.volume_ceiling:+.1f}dB  "
            f"step {record.volume_step:g}dB  every {record.poll_interval_seconds}s"
        )
    print("-" * 100)

    await registry.async_stop()


async def add_receiver(config_path: str, candidate: ConfigRecord):
    """Probe a receiver and add it, or update it if already configured."""
    print(f"Connecting to receiver at {candidate.address}...")

    registry = Registry(JsonConfigStorage(config_path), start_polling=False)
    await registry.async_start()
    try:
        record = await registry.add_or_update(candidate)
        print(f"Saved {record.name} ({record.model}) with id {record.id}, {record.zone_count} zone(s)")
    finally:
        await registry.async_stop()


async def delete_receiver(config_path: str, device_id: str):
    """Remove a receiver from the configuration."""
    registry = Registry(JsonConfigStorage(config_path), start_polling=False)
    await registry.async_start()
    try:
        await registry.delete(device_id)
        print(f"Deleted {device_id}")
    finally:
        await registry.async_stop()


async def show_status(config_path: str, device_id: str):
    """Poll a receiver once and display its active zone."""
    registry = Registry(JsonConfigStorage(config_path), start_polling=False)
    await registry.async_start()
    try:
        device = registry.get_device(device_id)
        if device is None:
            print(f"Error: No receiver with id '{device_id}'")
            return
        await device.async_update()
        state = device.state
        volume_str = f"{state.volume_level:.0%}"
        if state.muted:
            volume_str += " (muted)"
        print(f"{device.record.name} zone {state.zone}:")
        print(f"  Power: {'ON' if state.power else 'STANDBY'}")
        print(f"  Volume: {volume_str}")
        print(f"  Input: {state.input or 'unknown'}")
    finally:
        await registry.async_stop()


async def send_command(config_path: str, device_id: str, command: str, value=None):
    """Run a single control command against a receiver."""
    registry = Registry(JsonConfigStorage(config_path), start_polling=False)
    await registry.async_start()
    try:
        device = registry.get_device(device_id)
        if device is None:
            print(f"Error: No receiver with id '{device_id}'")
            return

        if command == "on":
            await device.power_on()
        elif command == "off":
            await device.power_off()
        elif command == "toggle":
            # toggling needs the current power state
            await device.async_update()
            await device.toggle_power()
        elif command == "volume":
            await device.set_volume(value)
        elif command == "up":
            await device.volume_up()
        elif command == "down":
            await device.volume_down()
        elif command == "mute":
            await device.toggle_mute()
        elif command == "input":
            await device.select_input(value)
        elif command == "zone":
            await registry.select_zone(device_id, value)
        print("Done")
    finally:
        await registry.async_stop()


async def watch(config_path: str):
    """Keep all receivers polled and log every state change until interrupted."""
    registry = Registry(JsonConfigStorage(config_path), listener=LoggingListener(logging.getLogger("pyavrbridge.watch")))
    await registry.async_start()
    print(f"Watching {len(registry.records())} receiver(s), Ctrl-C to stop")
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await registry.async_stop()


def main():
    parser = argparse.ArgumentParser(description="Control Yamaha AV receivers")
    parser.add_argument("--config", default="avrs.json", help="Configuration file (default: avrs.json)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("list", help="List configured receivers")

    add_parser = subparsers.add_parser("add", help="Add or update a receiver")
    add_parser.add_argument("address", help="Receiver IP address or hostname")
    add_parser.add_argument("--name", default="", help="Preferred name")
    add_parser.add_argument("--zone", type=int, default=1, help="Zone to control (1=main, 2, ...)")
    add_parser.add_argument("--max-volume", type=float, default=16.5, help="Max volume in dB, multiples of 0.5")
    add_parser.add_argument("--step", type=float, default=0.5, choices=[0.5, 1.0, 2.0, 5.0], help="Volume increment in dB")
    add_parser.add_argument("--interval", type=int, default=5, help="Update interval in seconds")

    delete_parser = subparsers.add_parser("delete", help="Delete a receiver")
    delete_parser.add_argument("id", help="Receiver id (serial)")

    status_parser = subparsers.add_parser("status", help="Show status of a receiver")
    status_parser.add_argument("id", help="Receiver id (serial)")

    for name, help_text in (
        ("on", "Turn on"),
        ("off", "Put in standby"),
        ("toggle", "Toggle power"),
        ("up", "Volume up one step"),
        ("down", "Volume down one step"),
        ("mute", "Toggle mute"),
    ):
        command_parser = subparsers.add_parser(name, help=help_text)
        command_parser.add_argument("id", help="Receiver id (serial)")

    volume_parser = subparsers.add_parser("volume", help="Set volume level")
    volume_parser.add_argument("id", help="Receiver id (serial)")
    volume_parser.add_argument("level", type=float, help="Volume level 0.0-1.0")

    input_parser = subparsers.add_parser("input", help="Select input")
    input_parser.add_argument("id", help="Receiver id (serial)")
    input_parser.add_argument("name", help="Input name, e.g. 'NET RADIO'")

    zone_parser = subparsers.add_parser("zone", help="Select the zone to control")
    zone_parser.add_argument("id", help="Receiver id (serial)")
    zone_parser.add_argument("zone", type=int, help="Zone number (1=main)")

    subparsers.add_parser("watch", help="Poll all receivers and log state changes")

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)

    try:
        if args.command == "list":
            asyncio.run(list_receivers(args.config))
        elif args.command == "add":
            candidate = ConfigRecord(
                address=args.address,
                display_name=args.name,
                active_zone=args.zone,
                volume_ceiling=args.max_volume,
                volume_step=args.step,
                poll_interval_seconds=args.interval,
            )
            asyncio.run(add_receiver(args.config, candidate))
        elif args.command == "delete":
            asyncio.run(delete_receiver(args.config, args.id))
        elif args.command == "status":
            asyncio.run(show_status(args.config, args.id))
        elif args.command in ("on", "off", "toggle", "up", "down", "mute"):
            asyncio.run(send_command(args.config, args.id, args.command))
        elif args.command == "volume":
            asyncio.run(send_command(args.config, args.id, "volume", args.level))
        elif args.command == "input":
            asyncio.run(send_command(args.config, args.id, "input", args.name))
        elif args.command == "zone":
            asyncio.run(send_command(args.config, args.id, "zone", args.zone))
        elif args.command == "watch":
            asyncio.run(watch(args.config))
        else:
            parser.print_help()
    except AvrError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
