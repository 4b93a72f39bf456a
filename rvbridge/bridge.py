"""The bridge itself: routes RV-C traffic to accessories and runs console commands."""

from __future__ import annotations

import argparse
import logging
import re
import sys
import time
from collections import deque
from collections.abc import Callable, Iterator
from enum import IntEnum
from itertools import chain
from typing import Any

from .accessories import RVAwning, RVBattery, RVRoofFan, RVSwitch, RVThermostat
from .devices import DEFAULT_PROFILE, DEFAULT_SOURCE_ADDRESS, BridgeConfig, get_profile, profile_names
from .rvc import (
    RVC_BRIGHT_MAX,
    CanFrame,
    Dgn,
    FanMode,
    PacketQueue,
    RVCSender,
    conv_to_temp_c,
)

log = logging.getLogger(__name__)


class PacketPrintMode(IntEnum):
    """Which received packets are logged."""

    NO = 0
    YES = 1
    IF_UNKNOWN = 2
    IF_KNOWN = 3


COMMANDS = {
    "l": "<index>=<level:0-250>,... - set level of <index>",
    "s": "<index>=<state:0-1>,... - set state of <index>",
    "o": "<index>=<state:0-1>,... - send onOff to <index>",
    "a": "<index>=<tempºF>,... - set ambient temp of <index>",
    "w": "<0-1> - set CAN-Bus write enable",
    "p": "<0-3> - set packet logging: 0=No, 1=Yes, 2=If unknown, 3=If known",
    "t": "<index>=<mode:0-2>,<tempºF>,optional(<fanmode:0-1>,<fanspeed:0-250>)"
    " - set info for thermostat <index>",
}

_QUIET_KNOWN_DGNS = frozenset(
    {
        Dgn.AIR_CONDITIONER_STATUS,
        Dgn.AWNING_STATUS,
        Dgn.AWNING_STATUS_2,
        Dgn.DATE_TIME_STATUS,
        Dgn.GENERIC_INDICATOR_COMMAND,
        Dgn.GENERIC_CONFIGURATION_STATUS,
        Dgn.BATTERY_STATUS,
        Dgn.TANK_STATUS,
        Dgn.GENERATOR_STATUS_1,
        0x0FECA,
        0x0E8FF,
        0x0EAFF,
        0x15FCE,
        0x1BBFD,
        0x1FACE,
        0x1FACF,
        0x1FBDA,
    }
)

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


def _atoi(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else 0


def _missing(value: int | None) -> bool:
    return value is None or value == -1


def parse_value_pair(text: str | None) -> tuple[int | None, int | None, str | None]:
    """Parse ``<a>=<b>[,rest]`` into (a, b, rest); (None, None, None) without '='."""
    if text is None:
        return None, None, None
    first, sep, after = text.partition("=")
    if not sep:
        return None, None, None
    _, comma, rest = after.partition(",")
    return _atoi(first), _atoi(after), rest if comma else None


def parse_next_value(text: str | None) -> tuple[int | None, str | None]:
    """Parse ``<n>[,rest]`` into (n, rest); (None, None) for empty input."""
    if not text:
        return None, None
    _, comma, rest = text.partition(",")
    return _atoi(text), rest if comma else None


def _payload(packet: CanFrame) -> bytes:
    return bytes(packet.data).ljust(8, b"\xff")


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class Bridge:
    """All accessories of one coach, fed by received frames and console commands."""

    def __init__(
        self,
        config: BridgeConfig | None = None,
        sender: RVCSender | None = None,
        clock: Callable[[], int] = _monotonic_ms,
    ) -> None:
        self.config = config if config is not None else BridgeConfig()
        self.clock = clock
        if sender is None:
            sender = RVCSender(PacketQueue(clock=clock), self.config.source_address)
        self.sender = sender
        self.queue: PacketQueue = sender.queue

        profile = self.config.profile
        self.switches = [RVSwitch(device, sender) for device in profile.switches]
        self.fans = [RVRoofFan(device, sender) for device in profile.fans]
        self.thermostats = [RVThermostat(device, sender) for device in profile.thermostats]
        self.awnings = [RVAwning(device, sender, clock) for device in profile.awnings]
        self.batteries = (
            [RVBattery(1), RVBattery(2)] if self.config.create_batteries else []
        )

        self.packet_print_mode = PacketPrintMode.NO
        self.inbox: deque[CanFrame] = deque()
        self.last_activity: int | None = None

    def _note(self, activity: bool) -> bool:
        if activity:
            self.last_activity = self.clock()
        return activity

    def _updatable(self) -> Iterator[Any]:
        yield from self.switches
        yield from self.fans
        for thermostat in self.thermostats:
            yield thermostat
            yield thermostat.fan
        yield from self.awnings

    def set_switch_level(self, index: int, level: int) -> bool:
        """Hand a dimmer level to every device; True if any of them used it."""
        results = [
            device.set_level(index, level)
            for device in chain(self.switches, self.fans, self.thermostats, self.awnings)
        ]
        return self._note(any(results))

    def set_ambient_temp(self, index: int, temp_c: float) -> bool:
        results = [t.set_ambient_temp(index, temp_c) for t in self.thermostats]
        return self._note(any(results))

    def set_thermostat_info(
        self,
        index: int,
        op_mode: int,
        fan_mode: int,
        fan_speed: int,
        heat_temp: float,
        cool_temp: float,
    ) -> bool:
        results = [
            t.set_info(index, op_mode, fan_mode, fan_speed, heat_temp, cool_temp)
            for t in self.thermostats
        ]
        return self._note(any(results))

    def set_battery_voltage(self, index: int, voltage: float) -> bool:
        results = [battery.set_voltage(index, voltage) for battery in self.batteries]
        return self._note(any(results))

    def process_packet(self, packet: CanFrame) -> None:
        """Apply a received status frame to the accessories."""
        if packet.rtr:
            return
        dgn = packet.dgn()
        d = _payload(packet)
        if dgn == Dgn.DC_DIMMER_STATUS_3:
            self.set_switch_level(d[0], min(d[2], RVC_BRIGHT_MAX))
        elif dgn == Dgn.THERMOSTAT_AMBIENT_STATUS:
            self.set_ambient_temp(d[0], conv_to_temp_c(d[2] << 8 | d[1]))
        elif dgn == Dgn.THERMOSTAT_STATUS_1:
            self.set_thermostat_info(
                d[0],
                d[1] & 0x0F,
                (d[1] >> 4) & 0x03,
                d[2],
                conv_to_temp_c(d[4] << 8 | d[3]),
                conv_to_temp_c(d[6] << 8 | d[5]),
            )
        elif dgn == Dgn.BATTERY_STATUS and self.batteries:
            self.set_battery_voltage(d[0], (d[3] << 8 | d[2]) * 0.050)

    def describe_packet(self, packet: CanFrame, mode: int | None = None) -> list[str]:
        """Return the log lines a frame produces under the given print mode."""
        mode = self.packet_print_mode if mode is None else PacketPrintMode(mode)
        if packet.rtr:
            return [f"RTR from 0x{packet.msg_id:08X}, DLC {packet.dlc}"]

        dgn = packet.dgn()
        d = _payload(packet)
        detail = mode in (PacketPrintMode.YES, PacketPrintMode.IF_KNOWN)
        lines: list[str] = []
        known = True

        if dgn == Dgn.DC_DIMMER_STATUS_3:
            if detail:
                lines.append(
                    f"DC_DIMMER_STATUS_3: inst={d[0]}, grp=0X{d[1]:02X}, "
                    f"bright={min(d[2], RVC_BRIGHT_MAX)}, enable={(d[3] >> 6) & 3}, "
                    f"dur={d[4]}, last cmd={d[5]}, status=0X{(d[6] >> 2) & 3:02X}"
                )
        elif dgn == Dgn.DC_DIMMER_COMMAND_2:
            if detail:
                lines.append(
                    f"DC_DIMMER_COMMAND_2: inst={d[0]}, grp=0X{d[1]:02X}, "
                    f"bright={d[2]}, cmd=0X{d[3]:02X}, dur={d[4]}"
                )
        elif dgn == Dgn.THERMOSTAT_AMBIENT_STATUS:
            if detail:
                temp = conv_to_temp_c(d[2] << 8 | d[1])
                lines.append(f"THERMOSTAT_AMBIENT_STATUS: #{d[0]}, temp={temp:.1f}ºC")
        elif dgn in (Dgn.THERMOSTAT_STATUS_1, Dgn.THERMOSTAT_COMMAND_1):
            if detail:
                name = (
                    "THERMOSTAT_COMMAND_1"
                    if dgn == Dgn.THERMOSTAT_COMMAND_1
                    else "THERMOSTAT_STATUS_1"
                )
                heat = conv_to_temp_c(d[4] << 8 | d[3])
                cool = conv_to_temp_c(d[6] << 8 | d[5])
                lines.append(
                    f"{name}: inst={d[0]}, opMode={d[1] & 0x0F}, "
                    f"fanMode={(d[1] >> 4) & 0x03}, fanSpeed={d[2]}, "
                    f"heatTemp={heat:.1f}ºC, coolTemp={cool:.1f}ºC"
                )
        elif dgn in (Dgn.FURNACE_STATUS, Dgn.FURNACE_COMMAND):
            if detail:
                name = "FURNACE_COMMAND" if dgn == Dgn.FURNACE_COMMAND else "FURNACE_STATUS"
                lines.append(
                    f"{name}: inst={d[0]}, opMode={d[1] & 0x03}, "
                    f"fanSpeed={d[2]}, heatOutput={d[3]}"
                )
        elif dgn == Dgn.DC_LOAD_COMMAND:
            lines.append(
                f"DC_LOAD_COMMAND: inst={d[0]}, grp=0X{d[1]:02X}, "
                f"bright={min(d[2], RVC_BRIGHT_MAX)}, dir={(d[3] >> 4) & 0xF}, cmd={d[4]}"
            )
        elif dgn == Dgn.AWNING_COMMAND:
            lines.append(
                f"AWNING_COMMAND: inst={d[0]}, dir={d[2]}, pos={d[3]}, retract={d[5]}"
            )
        elif dgn == Dgn.DC_SOURCE_STATUS_1:
            voltage = (d[3] << 8 | d[2]) * 0.050
            current = -2000000.0 + (d[7] << 24 | d[6] << 16 | d[5] << 8 | d[4]) * 0.001
            lines.append(
                f"DC_SOURCE_STATUS_1: inst={d[0]}, pri={d[1]}, "
                f"voltage={voltage:.1f}, current={current:.1f}"
            )
        elif dgn not in _QUIET_KNOWN_DGNS:
            known = False

        if (
            mode == PacketPrintMode.YES
            or (not known and mode == PacketPrintMode.IF_UNKNOWN)
            or (known and mode == PacketPrintMode.IF_KNOWN)
        ):
            kind = "Ext" if packet.extended else "Std"
            data = " ".join(f"{byte:02X}" for byte in packet.data)
            lines.append(
                f"{kind} - dgn={dgn:05X}, src={packet.source():02X}, "
                f"pri={packet.priority()}, Data: {data}"
            )
        return lines

    def _debug_packet(self, packet: CanFrame) -> None:
        if packet.rtr or not log.isEnabledFor(logging.DEBUG):
            return
        dgn = packet.dgn()
        if dgn in (Dgn.DC_LOAD_COMMAND, Dgn.AWNING_COMMAND, Dgn.AWNING_STATUS, Dgn.AWNING_STATUS_2):
            for line in self.describe_packet(packet, PacketPrintMode.IF_KNOWN)[:1]:
                log.debug(line)
            if dgn == Dgn.AWNING_STATUS:
                log.debug("AWNING_STATUS")
            elif dgn == Dgn.AWNING_STATUS_2:
                log.debug("AWNING_STATUS_2")
        elif dgn in (Dgn.DC_DIMMER_STATUS_3, Dgn.DC_DIMMER_COMMAND_2):
            awning_channels = {a.extend_index for a in self.awnings} | {
                a.retract_index for a in self.awnings
            }
            if _payload(packet)[0] in awning_channels:
                for line in self.describe_packet(packet, PacketPrintMode.IF_KNOWN)[:1]:
                    log.debug("AWNING %s", line)

    def _cmd_set(self, args: str, multiplier: int, label: str) -> list[str]:
        lines: list[str] = []
        errors = 0
        rest: str | None = args
        while rest is not None:
            index, value, rest = parse_value_pair(rest)
            if _missing(index) or _missing(value):
                errors += 1
                continue
            lines.append(f"{label}: index={index}, val={value}")
            self.set_switch_level(index, value * multiplier)
        if errors:
            raise ValueError(f"{label}: parameter error")
        return lines

    def _cmd_send_on_off(self, args: str) -> list[str]:
        lines: list[str] = []
        errors = 0
        rest: str | None = args
        while rest is not None:
            index, value, rest = parse_value_pair(rest)
            if _missing(index) or _missing(value):
                errors += 1
                continue
            lines.append(f"cmdSendOnOff: index={index}, val={value}")
            self.sender.send_on_off(index, bool(value))
        if errors:
            raise ValueError("cmdSendOnOff: parameter error")
        return lines

    def _cmd_set_ambient(self, args: str) -> list[str]:
        lines: list[str] = []
        errors = 0
        rest: str | None = args
        while rest is not None:
            index, temp_f, rest = parse_value_pair(rest)
            if _missing(index) or _missing(temp_f):
                errors += 1
                continue
            temp_c = (temp_f - 32.0) / 1.8
            lines.append(
                f"cmdSetAmbient: index={index}, tempF={temp_f}ºF ({temp_c:.1f}ºC)"
            )
            self.set_ambient_temp(index, temp_c)
        if errors:
            raise ValueError("cmdSetAmbient: parameter error")
        return lines

    def _cmd_set_thermostat(self, args: str) -> list[str]:
        index, op_mode, rest = parse_value_pair(args)
        temp_f, rest = parse_next_value(rest)
        fan_mode, rest = parse_next_value(rest)
        fan_speed, rest = parse_next_value(rest)
        if _missing(fan_mode):
            fan_mode = FanMode.AUTO
        if _missing(fan_speed):
            fan_speed = 0
        if _missing(index) or _missing(op_mode) or _missing(temp_f):
            raise ValueError("cmdSetThermostat: parameter error")
        temp_c = (temp_f - 32.0) / 1.8
        self.set_thermostat_info(index, op_mode, fan_mode, fan_speed, temp_c, temp_c)
        return [
            f"cmdSetThermostat: index={index}, mode={op_mode}, temp={temp_f}ºF "
            f"({temp_c:.1f}ºC), fanMode={int(fan_mode)}, fanSpeed={fan_speed}"
        ]

    def _cmd_set_can_write(self, args: str) -> list[str]:
        choice = args.lstrip(" ")[:1]
        if choice == "0":
            self.queue.write_enabled = False
            return ["CAN-Bus packet writes DISABLED."]
        if choice == "1":
            self.queue.write_enabled = True
            return ["CAN-Bus packet writes ENABLED."]
        raise ValueError("cmdSetCANWrite: parameter error")

    def _cmd_set_packet_log(self, args: str) -> list[str]:
        choice = args.lstrip(" ")[:1]
        labels = {"0": "Off", "1": "On", "2": "If Unknown", "3": "If Known"}
        if choice not in labels:
            raise ValueError("cmdSetPacketLog: parameter error")
        self.packet_print_mode = PacketPrintMode(int(choice))
        return [f"Packet logging: {labels[choice]}."]

    def handle_command(self, line: str) -> list[str]:
        """Run one console command such as ``l5=200,6=0``; return its output lines."""
        if not line:
            raise ValueError("empty command")
        letter, args = line[0], line[1:]
        if letter == "?":
            return [f"{key}{text}" for key, text in COMMANDS.items()]
        if letter == "l":
            return self._cmd_set(args, 1, "cmdSetLevel")
        if letter == "s":
            return self._cmd_set(args, RVC_BRIGHT_MAX, "cmdSetState")
        if letter == "o":
            return self._cmd_send_on_off(args)
        if letter == "a":
            return self._cmd_set_ambient(args)
        if letter == "w":
            return self._cmd_set_can_write(args)
        if letter == "p":
            return self._cmd_set_packet_log(args)
        if letter == "t":
            return self._cmd_set_thermostat(args)
        raise ValueError(f"unknown command {letter!r}")

    def poll(self) -> CanFrame | None:
        """Run one pass of the main loop; return the frame sent to the bus, if any."""
        if self.inbox:
            packet = self.inbox.popleft()
            if self.packet_print_mode != PacketPrintMode.NO:
                for line in self.describe_packet(packet):
                    log.info(line)
            self._debug_packet(packet)
            self.process_packet(packet)
        for accessory in self._updatable():
            accessory.update()
        for accessory in chain(self.awnings, self.batteries):
            accessory.loop()
        return self.queue.process()


_TYPE_NAMES = ("Lamp", "Dimmable", "Switch")


def main(argv: list[str] | None = None) -> int:
    """Run the bridge against console commands read from standard input."""
    parser = argparse.ArgumentParser(
        prog="rvbridge", description="Bridge RV-C coach devices to home-automation accessories."
    )
    parser.add_argument("--profile", default=DEFAULT_PROFILE, help="coach profile name")
    parser.add_argument("--source-address", type=int, default=DEFAULT_SOURCE_ADDRESS)
    parser.add_argument("--batteries", action="store_true", help="create battery devices")
    parser.add_argument("--list-profiles", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    if args.list_profiles:
        for name in profile_names():
            print(f"{name}: {get_profile(name).description}")
        return 0

    try:
        config = BridgeConfig(
            profile=args.profile,
            source_address=args.source_address,
            create_batteries=args.batteries,
        )
    except (KeyError, ValueError) as exc:
        parser.error(str(exc))

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    bridge = Bridge(config)

    for device in config.profile.switches:
        print(f'Creating {_TYPE_NAMES[device.type]} #{device.index}: "{device.name}"')
    for fan in config.profile.fans:
        print(f'Creating Fan #{fan.index}: "{fan.name}"')
    for thermostat in config.profile.thermostats:
        print(f'Creating Thermostat #{thermostat.cooling_instance}: "{thermostat.name}"')
    for awning in config.profile.awnings:
        print(f'Creating Awning "{awning.name}"')
    print("Init complete.")

    for raw in sys.stdin:
        line = raw.strip()
        if not line:
            continue
        try:
            for out in bridge.handle_command(line):
                print(out)
        except ValueError as exc:
            print(f"error: {exc}")
        bridge.poll()

    while len(bridge.queue):
        if bridge.poll() is None:
            time.sleep(0.001)
    return 0


if __name__ == "__main__":
    sys.exit(main())