"""RV-C protocol primitives: DGNs, frame layout, value conversions and the send queue."""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import IntEnum

from .devices import DEFAULT_SOURCE_ADDRESS

log = logging.getLogger(__name__)


class Dgn(IntEnum):
    """RV-C data group numbers used by the bridge."""

    DATE_TIME_STATUS = 0x1FFFF

    DC_DIMMER_COMMAND_2 = 0x1FEDB
    DC_DIMMER_STATUS_3 = 0x1FEDA

    GENERIC_INDICATOR_COMMAND = 0x1FED9
    GENERIC_CONFIGURATION_STATUS = 0x1FED8

    WINDOW_SHADE_CONTROL_STATUS = 0x1FEDE
    WINDOW_SHADE_CONTROL_COMMAND = 0x1FEDF

    CHASSIS_MOBILITY_STATUS = 0x1FFF4

    TANK_STATUS = 0x1FFB7

    AIR_CONDITIONER_STATUS = 0x1FFE0
    THERMOSTAT_AMBIENT_STATUS = 0x1FF9C
    THERMOSTAT_STATUS_1 = 0x1FFE2
    THERMOSTAT_STATUS_2 = 0x1FEFA
    THERMOSTAT_COMMAND_1 = 0x1FEF9
    FLOOR_HEAT_STATUS = 0x1FEFC
    FURNACE_STATUS = 0x1FFE4
    FURNACE_COMMAND = 0x1FFE3
    HEAT_PUMP_STATUS = 0x1FF9B

    INVERTER_TEMPERATURE_STATUS = 0x1FEBD

    ATS_STATUS = 0x1FFAA
    ATS_AC_STATUS_1 = 0x1FFAD
    ATS_AC_STATUS_2 = 0x1FFAC
    ATS_AC_STATUS_3 = 0x1FFAB
    ATS_AC_STATUS_4 = 0x1FF85

    AUTOFILL_STATUS = 0x1FFB1
    WATER_PUMP_STATUS = 0x1FFB3

    DC_LOAD_COMMAND = 0x1FFBC
    DC_LOAD_STATUS = 0x1FFBD
    DC_LOAD_STATUS_2 = 0x1FED
    DC_SOURCE_STATUS_1 = 0x1FFFD
    DC_SOURCE_STATUS_2 = 0x1FFFC
    DC_DISCONNECT_STATUS = 0x1FED0
    AC_LOAD_STATUS = 0x1FFBF

    CHARGER_CONFIGURATION_STATUS = 0x1FFC6
    CHARGER_CONFIGURATION_STATUS_2 = 0x1FF96
    CHARGER_CONFIGURATION_STATUS_3 = 0x1FECC
    CHARGER_STATUS = 0x1FFC7
    CHARGER_AC_STATUS_1 = 0x1FFCA

    GENERATOR_STATUS_1 = 0x1FFDC
    GENERATOR_AC_STATUS_1 = 0x1FFDF
    GENERATOR_DEMAND_STATUS = 0x1FF80

    INVERTER_STATUS = 0x1FFD4
    INVERTER_AC_STATUS_1 = 0x1FFD7
    INVERTER_DC_STATUS = 0x1FEE8

    LOCK_STATUS = 0x1FEE5

    AWNING_STATUS = 0x1FEF3
    AWNING_COMMAND = 0x1FEF2
    AWNING_STATUS_2 = 0x1FDCD

    BATTERY_STATUS = 0x1AAFD


class DCDimmerCmd(IntEnum):
    """Commands carried by DC_DIMMER_COMMAND_2."""

    SET_BRIGHTNESS = 0
    ON_DURATION = 1
    ON_DELAY = 2
    OFF = 3
    STOP = 4
    TOGGLE = 5
    MEMORY_OFF = 6
    RAMP_BRIGHTNESS = 7
    RAMP_TOGGLE = 8
    RAMP_UP = 9
    RAMP_DOWN = 10
    RAMP_UP_DOWN = 11
    LOCK = 12
    UNLOCK = 13
    FLASH = 14
    FLASH_MOMENTARILY = 15
    NA = 255


class ACMode(IntEnum):
    AUTO = 0
    MANUAL = 1
    NA = 3


class ThermostatMode(IntEnum):
    OFF = 0
    COOL = 1
    HEAT = 2
    AUTO = 3
    FAN_ONLY = 4
    AUX_HEAT = 5
    DEHUMIDIFY = 6
    NA = 7


class FanMode(IntEnum):
    AUTO = 0
    ON = 1
    NA = 3


TEMP_C_NA = 1775.0

RVC_PERCENT_MAX = 250
RVC_BRIGHT_MAX = 200
RVC_FAN_MAX = 200
HOMEKIT_PERCENT_MAX = 100.0

DEFAULT_PRIORITY = 6
SEND_QUEUE_SIZE = 8
SEND_PACKET_INTERVAL_MS = 50
MIN_SEND_PACKET_INTERVAL_MS = 5

_TEMP_C_OFFSET = -273.0
_TEMP_C_SCALE = 0.03125
_TEMP_C_ROUNDING_OFFSET = -0.25


def get_msg_bits(msg: int, start_bit: int, num_bits: int) -> int:
    """Extract *num_bits* bits of *msg* whose highest bit is *start_bit*."""
    if not 1 <= num_bits <= 32:
        raise ValueError(f"bit count {num_bits} out of range 1..32")
    shift = start_bit - num_bits + 1
    if shift < 0:
        raise ValueError("bit field extends below bit 0")
    mask = 0xFFFFFFFF >> (32 - num_bits)
    return (msg >> shift) & mask


def make_msg(dgn: int, source_id: int = 0, priority: int = DEFAULT_PRIORITY) -> int:
    """Build a 29-bit extended CAN identifier; a source of 0 means the default address."""
    if source_id == 0:
        source_id = DEFAULT_SOURCE_ADDRESS
    return ((priority << 26) | (dgn << 8) | (source_id & 0xFF)) & 0xFFFFFFFF


def conv_to_temp_c(value: int) -> float:
    """Convert an RV-C temperature word to degrees Celsius."""
    return _TEMP_C_OFFSET + value * _TEMP_C_SCALE + _TEMP_C_ROUNDING_OFFSET


def conv_from_temp_c(temp_c: float) -> int:
    """Convert degrees Celsius to an RV-C temperature word."""
    value = int((temp_c - _TEMP_C_OFFSET + 0.5) / _TEMP_C_SCALE)
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"temperature {temp_c}°C cannot be encoded")
    return value


def deg_c_from_deg_f(deg_f: float) -> float:
    """Convert a temperature difference in Fahrenheit degrees to Celsius degrees."""
    return deg_f / 1.8


def temp_c_from_temp_f(temp_f: float) -> float:
    """Convert a Fahrenheit temperature to Celsius."""
    return deg_c_from_deg_f(temp_f - 32.0)


@dataclass
class CanFrame:
    """A CAN frame as sent or received on the RV-C bus."""

    msg_id: int
    data: bytearray = field(default_factory=lambda: bytearray(8))
    rtr: bool = False
    extended: bool = True

    def __post_init__(self) -> None:
        self.data = bytearray(self.data)
        if len(self.data) > 8:
            raise ValueError("a CAN frame carries at most 8 data bytes")

    @property
    def dlc(self) -> int:
        return len(self.data)

    def dgn(self) -> int:
        return get_msg_bits(self.msg_id, 24, 17)

    def source(self) -> int:
        return get_msg_bits(self.msg_id, 7, 8)

    def priority(self) -> int:
        return get_msg_bits(self.msg_id, 28, 3)


def init_packet(index: int, dgn: int, source_address: int = DEFAULT_SOURCE_ADDRESS) -> CanFrame:
    """Return an 8-byte frame for *dgn* addressed to instance *index*, other bytes 0xFF."""
    data = bytearray(b"\xff" * 8)
    data[0] = index
    return CanFrame(make_msg(dgn, source_address), data)


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class PacketQueue:
    """Bounded outgoing frame queue that paces frames onto the bus."""

    def __init__(
        self,
        writer: Callable[[CanFrame], object] | None = None,
        clock: Callable[[], int] = _monotonic_ms,
        size: int = SEND_QUEUE_SIZE,
    ) -> None:
        if size < 2:
            raise ValueError("queue size must be at least 2")
        self._writer = writer
        self._clock = clock
        self._capacity = size - 1
        self._pending: deque[tuple[CanFrame, bool]] = deque()
        self._last_send = clock() - 1000
        self.write_enabled = True

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def full(self) -> bool:
        return len(self._pending) >= self._capacity

    def process(self) -> CanFrame | None:
        """Send the oldest frame if its gap has elapsed; return the frame sent."""
        if not self._pending:
            return None
        frame, short_gap = self._pending[0]
        interval = MIN_SEND_PACKET_INTERVAL_MS if short_gap else SEND_PACKET_INTERVAL_MS
        now = self._clock()
        if now - self._last_send < interval:
            return None
        self._pending.popleft()
        if self.write_enabled and self._writer is not None:
            self._writer(frame)
        else:
            log.info("%d: ***SIMULATE*** CAN-Bus Send Packet", now)
        self._last_send = now
        return frame

    def queue(self, packet: CanFrame, short_gap: bool = False) -> None:
        """Add *packet*, draining the queue first while it is full."""
        while self.full:
            self.process()
        self._pending.append((packet, short_gap))


class RVCSender:
    """Builds RV-C command frames and hands them to a packet queue."""

    def __init__(self, queue: PacketQueue, source_address: int = DEFAULT_SOURCE_ADDRESS) -> None:
        self.queue = queue
        self.source_address = source_address

    def send_dimmer_command(
        self, index: int, brightness: int, cmd: int, duration: int = 0xFF
    ) -> CanFrame:
        packet = init_packet(index, Dgn.DC_DIMMER_COMMAND_2, self.source_address)
        d = packet.data
        d[2] = min(brightness, RVC_BRIGHT_MAX)
        d[3] = cmd
        d[4] = duration
        d[5] = 0  # no interlock
        self.queue.queue(packet)
        return packet

    def send_on_off(self, index: int, on: bool, brightness: int = RVC_BRIGHT_MAX) -> CanFrame:
        log.debug("sendOnOff: #%d to %d", index, on)
        cmd = DCDimmerCmd.ON_DURATION if on else DCDimmerCmd.OFF
        return self.send_dimmer_command(index, brightness, cmd)

    def send_lamp_level(self, index: int, brightness: int) -> CanFrame:
        if brightness == 0:
            return self.send_on_off(index, False)
        log.debug("sendLampLevel: #%d to %d", index, brightness)
        return self.send_dimmer_command(index, brightness, DCDimmerCmd.SET_BRIGHTNESS, 0)

    def send_thermostat_command(
        self,
        index: int,
        mode: int,
        fan_mode: int,
        fan_speed: int,
        temp_c: float,
    ) -> CanFrame:
        packet = init_packet(index, Dgn.THERMOSTAT_COMMAND_1, self.source_address)
        d = packet.data
        d[1] = (mode | (fan_mode << 4)) & 0xFF
        d[2] = fan_speed
        temp_val = conv_from_temp_c(temp_c)
        d[3] = d[5] = temp_val & 0xFF
        d[4] = d[6] = temp_val >> 8
        self.queue.queue(packet)
        return packet