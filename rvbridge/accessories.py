"""HomeKit-style accessories that mirror RV-C devices and drive them over the bus."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

from .devices import AwningDevice, FanDevice, SwitchDevice, SwitchType, ThermostatDevice
from .rvc import (
    HOMEKIT_PERCENT_MAX,
    RVC_BRIGHT_MAX,
    RVC_FAN_MAX,
    RVC_PERCENT_MAX,
    FanMode,
    ThermostatMode,
    deg_c_from_deg_f,
    temp_c_from_temp_f,
)

log = logging.getLogger(__name__)

CURRENT_FAN_STATE_INACTIVE = 0
CURRENT_FAN_STATE_IDLE = 1
CURRENT_FAN_STATE_BLOWING = 2

TARGET_FAN_STATE_MANUAL = 0
TARGET_FAN_STATE_AUTO = 1

HEATING_COOLING_OFF = 0
HEATING_COOLING_HEAT = 1
HEATING_COOLING_COOL = 2

TEMPERATURE_DISPLAY_CELSIUS = 0
TEMPERATURE_DISPLAY_FAHRENHEIT = 1

AWNING_RETRACTED = 100.0
AWNING_EXTENDED = 0.0
AWNING_ROLL_PORTION = 5.0
AWNING_OUTPUT_TIME_MS = 500
AWNING_UPDATE_HOLD_TIME_MS = 500

AWNING_STATE_EXTENDING = 1 << 3
AWNING_STATE_RETRACTING = 1 << 4
AWNING_STATE_MOVING = AWNING_STATE_EXTENDING | AWNING_STATE_RETRACTING
AWNING_STATE_USER_ACTION = 1 << 6
AWNING_STATE_HOMEKIT_ACTION = 1 << 7


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class Characteristic:
    """One value of a service, with a pending value requested by the controller."""

    def __init__(
        self,
        value: Any = 0,
        minimum: float | None = None,
        maximum: float | None = None,
        step: float | None = None,
        valid_values: Iterable[Any] | None = None,
    ) -> None:
        self.value = value
        self.minimum = minimum
        self.maximum = maximum
        self.step = step
        self.valid_values = tuple(valid_values) if valid_values is not None else None
        self._pending: Any = None
        self._updated = False

    def set_val(self, value: Any) -> None:
        """Set the value from the device side."""
        self.value = value

    def request(self, value: Any) -> None:
        """Record a change asked for by the controller, to be handled by update()."""
        if self.valid_values is not None and value not in self.valid_values:
            raise ValueError(f"{value!r} is not one of {self.valid_values}")
        if self.minimum is not None and value < self.minimum:
            raise ValueError(f"{value!r} is below the minimum {self.minimum}")
        if self.maximum is not None and value > self.maximum:
            raise ValueError(f"{value!r} is above the maximum {self.maximum}")
        self._pending = value
        self._updated = True

    def updated(self) -> bool:
        return self._updated

    def new_value(self) -> Any:
        """The requested value if there is one, else the current value."""
        return self._pending if self._updated else self.value

    def commit(self) -> None:
        """Make a pending requested value the current value."""
        if self._updated:
            self.value = self._pending
            self._pending = None
            self._updated = False


def _commit(*characteristics: Characteristic | None) -> None:
    for characteristic in characteristics:
        if characteristic is not None:
            characteristic.commit()


class RVSwitch:
    """A lamp, dimmable lamp or switch on a DC dimmer channel."""

    def __init__(self, device: SwitchDevice, sender: Any) -> None:
        self.device = device
        self.index = device.index
        self.sender = sender
        self.on = Characteristic(False)
        self.brightness: Characteristic | None = None
        if device.type == SwitchType.DIMMABLE_LAMP:
            self.brightness = Characteristic(
                HOMEKIT_PERCENT_MAX, 0, HOMEKIT_PERCENT_MAX, 5
            )

    def update(self) -> bool:
        brightness = self.brightness
        if self.on.updated() or (brightness is not None and brightness.updated()):
            if brightness is not None:
                level = int(
                    bool(self.on.new_value())
                    * brightness.new_value()
                    * RVC_BRIGHT_MAX
                    / HOMEKIT_PERCENT_MAX
                )
                self.sender.send_lamp_level(self.index, level)
            else:
                self.sender.send_on_off(self.index, bool(self.on.new_value()))
        _commit(self.on, brightness)
        return True

    def set_level(self, index: int, level: int) -> bool:
        """Apply a dimmer status; return True if the packet concerned this switch."""
        if index != self.index:
            return False
        on = level > 0
        percent = int(level * HOMEKIT_PERCENT_MAX / RVC_BRIGHT_MAX)
        activity = False
        if on != self.on.value:
            log.debug("Switch #%d: on = %d", self.index, on)
            self.on.set_val(on)
            activity = True
        if self.brightness is not None and on and percent != self.brightness.value:
            log.debug("Switch #%d: level = %d", self.index, percent)
            self.brightness.set_val(percent)
            activity = True
        return activity


class RVRoofFan:
    """A roof fan whose lid may be raised and lowered by separate channels."""

    def __init__(self, device: FanDevice, sender: Any) -> None:
        self.device = device
        self.index = device.index
        self.up_index = device.up_index
        self.down_index = device.down_index
        self.sender = sender
        self.active = Characteristic(False)
        self.fan_power = False
        self.lid_up = False

    def update(self) -> bool:
        if self.active.updated():
            new_value = bool(self.active.new_value())
            self.sender.send_on_off(self.index, new_value)
            if self.up_index is not None and self.down_index is not None:
                if new_value:
                    self.sender.send_on_off(self.down_index, False)
                    self.sender.send_on_off(self.up_index, True)
                else:
                    self.sender.send_on_off(self.up_index, False)
                    self.sender.send_on_off(self.down_index, True)
                self.lid_up = new_value
            self.fan_power = new_value
        _commit(self.active)
        return True

    def set_level(self, index: int, level: int) -> bool:
        on = level > 0
        if index == self.index:
            self.fan_power = on
        elif self.up_index is not None and index == self.up_index and on:
            self.lid_up = True
        elif self.down_index is not None and index == self.down_index and on:
            self.lid_up = False
        else:
            return False
        new_state = self.fan_power and (self.up_index is None or self.lid_up)
        if new_state != self.active.value:
            log.debug("Fan #%d: active = %d", self.index, new_state)
            self.active.set_val(new_state)
        return True


class RVHVACFan:
    """The blower of an air-conditioning zone."""

    def __init__(self, device: ThermostatDevice, on_change: Callable[[], object]) -> None:
        self.index = device.cooling_instance
        self.fan_h_index = device.fan_h_index
        self.fan_l_index = device.fan_l_index
        self.on_change = on_change
        self.active = Characteristic(False)
        self.speed = Characteristic(0, 0, HOMEKIT_PERCENT_MAX, HOMEKIT_PERCENT_MAX / 2)
        self.current_state = Characteristic(CURRENT_FAN_STATE_IDLE)
        self.target_state = Characteristic(
            TARGET_FAN_STATE_AUTO,
            valid_values=(TARGET_FAN_STATE_MANUAL, TARGET_FAN_STATE_AUTO),
        )
        self.fan_h_running = False
        self.fan_l_running = False

    def update(self) -> bool:
        changed = False
        if self.active.updated():
            log.debug("RVHVACFan #%d - Active: %s", self.index, self.active.new_value())
            changed = True
        if self.speed.updated():
            log.debug("RVHVACFan #%d - Speed: %s", self.index, self.speed.new_value())
            changed = True
        if self.target_state.updated():
            log.debug(
                "RVHVACFan #%d - Target State: %s", self.index, self.target_state.new_value()
            )
        if changed:
            self.on_change()
        _commit(self.active, self.speed, self.target_state)
        return True

    def set_mode_speed(self, fan_mode: int, speed: int) -> None:
        new_active = fan_mode == FanMode.ON
        percent = int(speed * HOMEKIT_PERCENT_MAX / RVC_PERCENT_MAX)
        if new_active != self.active.value:
            self.active.set_val(new_active)
        if percent != self.speed.value:
            self.speed.set_val(percent)

    def mode_speed(self) -> tuple[FanMode, int]:
        """Return the fan mode and RV-C fan speed the controller asks for."""
        if self.active.new_value():
            return FanMode.ON, int(self.speed.new_value() * RVC_FAN_MAX / HOMEKIT_PERCENT_MAX)
        return FanMode.AUTO, 0

    def set_level(self, index: int, level: int) -> bool:
        on = level > 0
        if index == self.fan_h_index and on != self.fan_h_running:
            self.fan_h_running = on
        elif index == self.fan_l_index and on != self.fan_l_running:
            self.fan_l_running = on
        else:
            return False
        blowing = self.fan_h_running or self.fan_l_running
        new_state = CURRENT_FAN_STATE_BLOWING if blowing else CURRENT_FAN_STATE_IDLE
        if new_state != self.current_state.value:
            log.debug("HVACFan #%d: currentState = %d", self.index, new_state)
            self.current_state.set_val(new_state)
        return True


_TARGET_TO_MODE = (ThermostatMode.OFF, ThermostatMode.HEAT, ThermostatMode.COOL)
_MODE_TO_TARGET = {
    ThermostatMode.OFF: HEATING_COOLING_OFF,
    ThermostatMode.COOL: HEATING_COOLING_COOL,
    ThermostatMode.HEAT: HEATING_COOLING_HEAT,
}


class RVThermostat:
    """An air-conditioning zone with an optional furnace and its fan."""

    def __init__(self, device: ThermostatDevice, sender: Any) -> None:
        self.device = device
        self.sender = sender
        self.ambient_temp = Characteristic(temp_c_from_temp_f(68))
        self.target_temp = Characteristic(
            temp_c_from_temp_f(68),
            temp_c_from_temp_f(50),
            temp_c_from_temp_f(95),
            deg_c_from_deg_f(1.0),
        )
        self.current_state = Characteristic(HEATING_COOLING_OFF)
        if device.furnace_instance is not None:
            valid = (HEATING_COOLING_OFF, HEATING_COOLING_HEAT, HEATING_COOLING_COOL)
        else:
            valid = (HEATING_COOLING_OFF, HEATING_COOLING_COOL)
        self.target_state = Characteristic(HEATING_COOLING_OFF, valid_values=valid)
        self.display_units = Characteristic(TEMPERATURE_DISPLAY_FAHRENHEIT)

        self.cooling_instance = device.cooling_instance
        self.compressor_index = device.compressor_index
        self.furnace_instance = device.furnace_instance
        self.combustion_index = device.combustion_index
        self.cooling_mode: int = ThermostatMode.OFF
        self.furnace_mode: int = ThermostatMode.OFF
        self.compressor_running = False
        self.furnace_running = False

        self.fan = RVHVACFan(device, self.update_thermostat)

    def update_thermostat(self) -> None:
        """Send the modes and set point the controller asks for."""
        op_mode = _TARGET_TO_MODE[self.target_state.new_value()]
        fan_mode, speed = self.fan.mode_speed()
        temp = float(self.target_temp.new_value())

        if op_mode == ThermostatMode.OFF and fan_mode == FanMode.ON:
            op_mode = ThermostatMode.FAN_ONLY

        send = self.sender.send_thermostat_command
        if self.furnace_instance is not None and op_mode == ThermostatMode.HEAT:
            if self.cooling_mode != ThermostatMode.OFF:
                send(self.cooling_instance, ThermostatMode.OFF, FanMode.AUTO, 0xFF, temp)
            send(self.furnace_instance, op_mode, FanMode.AUTO, 0xFF, temp)
        else:
            if self.furnace_instance is not None and self.furnace_mode != ThermostatMode.OFF:
                send(self.furnace_instance, ThermostatMode.OFF, FanMode.NA, 0xFF, temp)
            send(self.cooling_instance, op_mode, fan_mode, speed, temp)

    def update(self) -> bool:
        if self.target_state.updated() or self.target_temp.updated():
            self.update_thermostat()
        _commit(self.target_state, self.target_temp)
        return True

    def set_level(self, index: int, level: int) -> bool:
        on = level > 0
        changed = False
        if index == self.compressor_index and on != self.compressor_running:
            log.debug("Thermostat #%d: compressor = %d", index, on)
            self.compressor_running = on
            changed = True
        if (
            self.combustion_index is not None
            and index == self.combustion_index
            and on != self.furnace_running
        ):
            log.debug("Thermostat #%d: furnace = %d", index, on)
            self.furnace_running = on
            changed = True
        activity = False
        if changed:
            if self.furnace_running:
                new_state = HEATING_COOLING_HEAT
            elif self.compressor_running:
                new_state = HEATING_COOLING_COOL
            else:
                new_state = HEATING_COOLING_OFF
            if new_state != self.current_state.value:
                self.current_state.set_val(new_state)
                activity = True
        fan_activity = self.fan.set_level(index, level)
        return activity or fan_activity

    def set_ambient_temp(self, index: int, temp_c: float) -> bool:
        if index == self.cooling_instance and abs(temp_c - self.ambient_temp.value) > 0.2:
            log.debug("Set ambient temp #%d: %.1f°C", self.cooling_instance, temp_c)
            self.ambient_temp.set_val(temp_c)
            return True
        return False

    def set_info(
        self,
        index: int,
        op_mode: int,
        fan_mode: int,
        fan_speed: int,
        heat_temp: float,
        cool_temp: float,
    ) -> bool:
        update_mode = False
        activity = False
        if index == self.cooling_instance:
            if op_mode != self.cooling_mode:
                self.cooling_mode = op_mode
                update_mode = True
            if abs(cool_temp - self.target_temp.value) > 0.2:
                log.debug("Thermostat #%d: targetTemp = %f", index, cool_temp)
                self.target_temp.set_val(cool_temp)
                activity = True
            self.fan.set_mode_speed(fan_mode, fan_speed)
        elif self.furnace_instance is not None and index == self.furnace_instance:
            if op_mode != self.furnace_mode:
                self.furnace_mode = op_mode
                update_mode = True

        if update_mode:
            if self.furnace_mode == ThermostatMode.HEAT:
                mode = HEATING_COOLING_HEAT
            else:
                mode = _MODE_TO_TARGET.get(self.cooling_mode, HEATING_COOLING_OFF)
            if mode != self.target_state.value:
                log.debug("Thermostat #%d: targetState = %d", index, mode)
                self.target_state.set_val(mode)
                activity = True
        return activity


class RVBattery:
    """A battery shown as a thermostat whose temperature reads ten times its voltage."""

    def __init__(self, instance: int) -> None:
        self.instance = instance
        low, high = temp_c_from_temp_f(100), temp_c_from_temp_f(160)
        self.ambient_temp = Characteristic(low, low, high)
        self.target_temp = Characteristic(low, low, high)
        self.current_state = Characteristic(HEATING_COOLING_OFF)
        self.target_state = Characteristic(
            HEATING_COOLING_OFF, valid_values=(HEATING_COOLING_OFF, HEATING_COOLING_COOL)
        )
        self.display_units = Characteristic(TEMPERATURE_DISPLAY_FAHRENHEIT)

    def loop(self) -> None:
        if self.target_state.value != HEATING_COOLING_OFF:
            self.target_state.set_val(HEATING_COOLING_OFF)

    def set_voltage(self, index: int, voltage: float) -> bool:
        as_temp = temp_c_from_temp_f(voltage * 10.0)
        if index == self.instance and as_temp != self.ambient_temp.value:
            self.ambient_temp.set_val(as_temp)
            self.target_temp.set_val(as_temp)
            return True
        return False


class RVAwning:
    """A powered awning whose position is estimated from motor run time."""

    def __init__(
        self,
        device: AwningDevice,
        sender: Any,
        clock: Callable[[], int] = _monotonic_ms,
    ) -> None:
        self.device = device
        self.sender = sender
        self.clock = clock
        self.current_position = Characteristic(AWNING_RETRACTED)
        self.target_position = Characteristic(
            AWNING_RETRACTED, AWNING_EXTENDED, AWNING_RETRACTED, 5
        )
        self.state = 0
        self.position = AWNING_RETRACTED
        self.current_target = AWNING_RETRACTED

        self.retract_index = device.retract_index
        self.extend_index = device.extend_index
        self.open_time_ms = device.retract_time_ms
        self.roll_open_time_ms = max(1, device.roll_retract_time_ms)
        self.close_time_ms = device.extend_time_ms
        self.roll_close_time_ms = max(1, device.roll_extend_time_ms)

        self.extend_state = False
        self.retract_state = False
        self._target_update_at = 0
        self._no_update_before = 0
        self._extend_off_time = 0
        self._retract_off_time = 0
        self._last_time = 0

    def send_extend(self) -> None:
        """Pulse the extend output; a pulse while moving stops the awning."""
        self.sender.send_on_off(self.extend_index, True)
        self._extend_off_time = self.clock() + AWNING_OUTPUT_TIME_MS

    def send_retract(self) -> None:
        """Pulse the retract output; a pulse while moving stops the awning."""
        self.sender.send_on_off(self.retract_index, True)
        self._retract_off_time = self.clock() + AWNING_OUTPUT_TIME_MS

    def target_update(self) -> None:
        now = self.clock()
        target = float(self.target_position.value)
        if target == self.current_target:
            return
        move = target - self.position
        if move == 0:
            return
        direction = AWNING_STATE_RETRACTING if move > 0 else AWNING_STATE_EXTENDING

        if direction == self.state & AWNING_STATE_MOVING:
            self.state = AWNING_STATE_HOMEKIT_ACTION | direction
            self.current_target = target
        elif self.state & AWNING_STATE_MOVING:
            log.debug("Awning - wrong direction, stop movement, queue move")
            if self.state & AWNING_STATE_EXTENDING:
                self.send_extend()
            else:
                self.send_retract()
            self.current_position.set_val(self.position)
            self.state = 0
            self._target_update_at = now + AWNING_OUTPUT_TIME_MS + AWNING_UPDATE_HOLD_TIME_MS
        else:
            self.state = AWNING_STATE_HOMEKIT_ACTION | direction
            self.current_target = target
            log.debug("Awning - change position from %.1f%% to %.1f%%", self.position, target)
            if self.state & AWNING_STATE_EXTENDING:
                self.send_extend()
            else:
                self.send_retract()

    def update(self) -> bool:
        if self.target_position.updated():
            now = self.clock()
            target = float(self.target_position.new_value())
            move = target - self.position
            if move != 0:
                direction = AWNING_STATE_RETRACTING if move > 0 else AWNING_STATE_EXTENDING
                if target in (AWNING_EXTENDED, AWNING_RETRACTED):
                    self._target_update_at = now
                elif direction != self.state & AWNING_STATE_MOVING:
                    self._target_update_at = now
                else:
                    # intermediate targets tend to arrive in bursts; wait for the last one
                    self._target_update_at = now + AWNING_UPDATE_HOLD_TIME_MS
        _commit(self.target_position)
        return True

    def loop(self) -> None:
        now = self.clock()
        if self._last_time == 0:
            self._last_time = now

        if (
            self._target_update_at != 0
            and now > self._target_update_at
            and now > self._no_update_before
        ):
            self._target_update_at = 0
            self.target_update()
            return
        if now <= self._last_time:
            return

        retracting = bool(self.state & AWNING_STATE_RETRACTING)
        if self.state & AWNING_STATE_MOVING:
            # rolling around the spindle is condensed into the final few percent
            if self.position < AWNING_ROLL_PORTION:
                rate = (
                    AWNING_ROLL_PORTION / self.roll_open_time_ms
                    if retracting
                    else -(AWNING_ROLL_PORTION / self.roll_close_time_ms)
                )
            else:
                span = HOMEKIT_PERCENT_MAX - AWNING_ROLL_PORTION
                rate = span / self.open_time_ms if retracting else -(span / self.close_time_ms)

            self.position += (now - self._last_time) * rate
            self.position = max(AWNING_EXTENDED, min(AWNING_RETRACTED, self.position))

            target = float(self.target_position.value)
            if (retracting and self.position >= target) or (
                not retracting and self.position <= target
            ):
                if self.state & AWNING_STATE_HOMEKIT_ACTION:
                    if retracting and target < AWNING_RETRACTED:
                        self.send_retract()
                    elif not retracting and target > AWNING_EXTENDED:
                        self.send_extend()
                self.position = target
                self.current_position.set_val(target)
                self.state = 0
                log.debug("Awning operation completed")

        if self._extend_off_time != 0 and now >= self._extend_off_time:
            self.sender.send_on_off(self.extend_index, False)
            self._extend_off_time = 0
            self._no_update_before = now + AWNING_UPDATE_HOLD_TIME_MS
        if self._retract_off_time != 0 and now >= self._retract_off_time:
            self.sender.send_on_off(self.retract_index, False)
            self._retract_off_time = 0
            self._no_update_before = now + AWNING_UPDATE_HOLD_TIME_MS

        self._last_time = now

    def awning_button(self, extend: bool) -> None:
        """React to a wall button press seen on the bus."""
        now = self.clock()
        if not (now > self._extend_off_time and now > self._retract_off_time):
            return
        if self.state & AWNING_STATE_MOVING:
            self.state = 0
            self.target_position.set_val(self.position)
            self.current_target = self.position
        elif extend and self.position > AWNING_EXTENDED:
            self.target_position.set_val(AWNING_EXTENDED)
            self.current_target = AWNING_EXTENDED
            self.state = AWNING_STATE_USER_ACTION | AWNING_STATE_EXTENDING
        elif not extend and self.position < AWNING_RETRACTED:
            self.target_position.set_val(AWNING_RETRACTED)
            self.current_target = AWNING_RETRACTED
            self.state = AWNING_STATE_USER_ACTION | AWNING_STATE_RETRACTING

    def set_level(self, index: int, level: int) -> bool:
        on = level > 0
        if index == self.retract_index:
            if on != self.retract_state:
                self.retract_state = on
                if on:
                    self.awning_button(False)
            return True
        if index == self.extend_index:
            if on != self.extend_state:
                self.extend_state = on
                if on:
                    self.awning_button(True)
            return True
        return False