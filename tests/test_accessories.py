import pytest

from rvbridge.accessories import (
    HEATING_COOLING_COOL,
    HEATING_COOLING_HEAT,
    HEATING_COOLING_OFF,
    Characteristic,
    RVAwning,
    RVBattery,
    RVHVACFan,
    RVRoofFan,
    RVSwitch,
    RVThermostat,
)
from rvbridge.devices import get_profile
from rvbridge.rvc import FanMode, ThermostatMode, temp_c_from_temp_f


class FakeSender:
    def __init__(self):
        self.calls = []

    def send_on_off(self, index, on, brightness=200):
        self.calls.append(("on_off", index, on))

    def send_lamp_level(self, index, brightness):
        self.calls.append(("lamp", index, brightness))

    def send_thermostat_command(self, index, mode, fan_mode, fan_speed, temp_c):
        self.calls.append(("thermostat", index, mode, fan_mode, fan_speed, temp_c))


class FakeClock:
    def __init__(self, now=1000):
        self.now = now

    def __call__(self):
        return self.now


MIRAMAR = get_profile("Miramar_2020_3202")


def switch_named(name):
    return next(s for s in MIRAMAR.switches if s.name == name)


def test_characteristic_request_and_commit():
    c = Characteristic(0, 0, 100)
    c.request(40)
    assert c.updated()
    assert c.new_value() == 40
    assert c.value == 0
    c.commit()
    assert not c.updated()
    assert c.value == 40
    assert c.new_value() == 40


def test_characteristic_rejects_out_of_range_and_invalid():
    c = Characteristic(0, 0, 100)
    with pytest.raises(ValueError):
        c.request(101)
    v = Characteristic(0, valid_values=(0, 2))
    with pytest.raises(ValueError):
        v.request(1)
    assert not v.updated()


def test_dimmable_switch_sends_lamp_level():
    sender = FakeSender()
    sw = RVSwitch(switch_named("Living Room"), sender)
    sw.on.request(True)
    sw.brightness.request(50)
    assert sw.update() is True
    assert sender.calls == [("lamp", 1, 100)]
    assert sw.brightness.value == 50


def test_plain_switch_sends_on_off():
    sender = FakeSender()
    sw = RVSwitch(switch_named("Water Pump"), sender)
    assert sw.brightness is None
    sw.on.request(True)
    sw.update()
    assert sender.calls == [("on_off", 23, True)]


def test_switch_set_level_from_bus():
    sw = RVSwitch(switch_named("Living Room"), FakeSender())
    assert sw.set_level(1, 200) is True
    assert sw.on.value is True
    assert sw.brightness.value == 100
    assert sw.set_level(2, 0) is False
    assert sw.on.value is True


def test_roof_fan_with_lid_update_sequence():
    sender = FakeSender()
    fan = RVRoofFan(MIRAMAR.fans[0], sender)
    fan.active.request(True)
    fan.update()
    assert sender.calls == [("on_off", 20, True), ("on_off", 52, False), ("on_off", 51, True)]
    assert fan.lid_up and fan.fan_power


def test_roof_fan_needs_lid_up_to_be_active():
    fan = RVRoofFan(MIRAMAR.fans[0], FakeSender())
    fan.set_level(20, 200)
    assert fan.active.value is False
    fan.set_level(51, 200)
    assert fan.active.value is True
    fan.set_level(52, 200)
    assert fan.active.value is False


def test_roof_fan_without_lid():
    fan = RVRoofFan(MIRAMAR.fans[1], FakeSender())
    assert fan.set_level(21, 200) is True
    assert fan.active.value is True


def test_hvac_fan_mode_speed_round_trip():
    changes = []
    fan = RVHVACFan(MIRAMAR.thermostats[0], lambda: changes.append(1))
    fan.set_mode_speed(FanMode.ON, 250)
    assert fan.active.value is True
    assert fan.speed.value == 100
    assert fan.mode_speed() == (FanMode.ON, 200)
    fan.active.request(False)
    assert fan.mode_speed() == (FanMode.AUTO, 0)
    fan.update()
    assert changes == [1]


def test_hvac_fan_blowing_state():
    fan = RVHVACFan(MIRAMAR.thermostats[0], lambda: None)
    fan.set_level(26, 200)
    assert fan.current_state.value == 2
    fan.set_level(26, 0)
    assert fan.current_state.value == 1


def test_thermostat_heat_goes_to_furnace():
    sender = FakeSender()
    t = RVThermostat(MIRAMAR.thermostats[0], sender)
    t.target_state.request(HEATING_COOLING_HEAT)
    t.update()
    assert sender.calls == [
        ("thermostat", 2, ThermostatMode.HEAT, FanMode.AUTO, 0xFF, temp_c_from_temp_f(68))
    ]
    assert t.target_state.value == HEATING_COOLING_HEAT


def test_thermostat_cool_goes_to_cooling_instance():
    sender = FakeSender()
    t = RVThermostat(MIRAMAR.thermostats[1], sender)
    t.target_state.request(HEATING_COOLING_COOL)
    t.update()
    assert sender.calls[-1][:5] == ("thermostat", 1, ThermostatMode.COOL, FanMode.AUTO, 0)


def test_thermostat_without_furnace_rejects_heat():
    t = RVThermostat(MIRAMAR.thermostats[1], FakeSender())
    with pytest.raises(ValueError):
        t.target_state.request(HEATING_COOLING_HEAT)


def test_thermostat_current_state_from_levels():
    t = RVThermostat(MIRAMAR.thermostats[0], FakeSender())
    t.set_level(25, 200)
    assert t.current_state.value == HEATING_COOLING_COOL
    t.set_level(33, 200)
    assert t.current_state.value == HEATING_COOLING_HEAT
    t.set_level(33, 0)
    t.set_level(25, 0)
    assert t.current_state.value == HEATING_COOLING_OFF


def test_thermostat_ambient_threshold():
    t = RVThermostat(MIRAMAR.thermostats[0], FakeSender())
    start = t.ambient_temp.value
    assert t.set_ambient_temp(0, start + 0.1) is False
    assert t.ambient_temp.value == start
    assert t.set_ambient_temp(0, start + 1.0) is True
    assert t.ambient_temp.value == start + 1.0


def test_thermostat_set_info_updates_target():
    t = RVThermostat(MIRAMAR.thermostats[0], FakeSender())
    t.set_info(0, ThermostatMode.COOL, FanMode.AUTO, 0, 20.0, 22.0)
    assert t.target_state.value == HEATING_COOLING_COOL
    assert t.target_temp.value == 22.0
    t.set_info(2, ThermostatMode.HEAT, FanMode.AUTO, 0, 20.0, 20.0)
    assert t.target_state.value == HEATING_COOLING_HEAT


def test_battery_voltage_and_loop():
    b = RVBattery(1)
    assert b.set_voltage(1, 13.0) is True
    assert b.ambient_temp.value == temp_c_from_temp_f(130.0)
    assert b.target_temp.value == b.ambient_temp.value
    assert b.set_voltage(2, 12.0) is False
    b.target_state.set_val(HEATING_COOLING_COOL)
    b.loop()
    assert b.target_state.value == HEATING_COOLING_OFF


def run(awning, clock, until, step):
    while clock.now < until:
        clock.now += step
        awning.loop()


def test_awning_button_extend_runs_to_end():
    sender = FakeSender()
    clock = FakeClock()
    a = RVAwning(MIRAMAR.awnings[0], sender, clock)
    a.loop()
    assert a.set_level(5, 200) is True
    assert a.target_position.value == 0.0
    run(a, clock, 45000, 1000)
    assert a.current_position.value == 0.0
    assert a.state == 0
    assert sender.calls == []


def test_awning_homekit_full_extend():
    sender = FakeSender()
    clock = FakeClock()
    a = RVAwning(MIRAMAR.awnings[0], sender, clock)
    a.loop()
    a.target_position.request(0)
    a.update()
    run(a, clock, 45000, 100)
    assert sender.calls == [("on_off", 5, True), ("on_off", 5, False)]
    assert a.current_position.value == 0.0


def test_awning_homekit_partial_extend_stops():
    sender = FakeSender()
    clock = FakeClock()
    a = RVAwning(MIRAMAR.awnings[0], sender, clock)
    a.loop()
    a.target_position.request(50)
    a.update()
    run(a, clock, 30000, 100)
    assert sender.calls == [
        ("on_off", 5, True),
        ("on_off", 5, False),
        ("on_off", 5, True),
        ("on_off", 5, False),
    ]
    assert a.current_position.value == 50.0
    assert a.position == 50.0


def test_awning_ignores_other_index():
    a = RVAwning(MIRAMAR.awnings[0], FakeSender(), FakeClock())
    assert a.set_level(99, 200) is False
    assert a.state == 0