import dataclasses

import pytest

from rvbridge.devices import (
    AwningDevice,
    BridgeConfig,
    CoachProfile,
    FanDevice,
    SwitchDevice,
    SwitchType,
    ThermostatDevice,
    get_profile,
    profile_names,
)

ALL_NAMES = (
    "Aria_2019_3901",
    "Jayco_2023_Terrain",
    "Miramar_2020_3202",
    "Newmar_EX_2022",
    "Tiffin_2019_34PA",
)


def test_profile_names_lists_all_coaches_sorted():
    names = profile_names()
    assert set(names) == set(ALL_NAMES)
    assert list(names) == sorted(names)


@pytest.mark.parametrize("name", ALL_NAMES)
def test_get_profile_returns_named_profile(name):
    profile = get_profile(name)
    assert profile.name == name
    assert profile.switches
    assert profile.thermostats


def test_get_profile_is_case_insensitive():
    assert get_profile("miramar_2020_3202") is get_profile("Miramar_2020_3202")


def test_unknown_profile_raises_key_error():
    with pytest.raises(KeyError):
        get_profile("No_Such_Coach")


@pytest.mark.parametrize("name", ALL_NAMES)
def test_switch_indices_are_unique(name):
    indices = [s.index for s in get_profile(name).switches]
    assert len(indices) == len(set(indices))


def test_miramar_water_pump_is_a_switch():
    pump = next(s for s in get_profile("Miramar_2020_3202").switches if s.name == "Water Pump")
    assert pump == SwitchDevice(23, SwitchType.SWITCH, "Water Pump")


def test_missing_fan_lid_becomes_none():
    fans = {f.name: f for f in get_profile("Miramar_2020_3202").fans}
    assert fans["Bathroom"] == FanDevice(21, None, None, "Bathroom")
    assert fans["Kitchen"] == FanDevice(20, 51, 52, "Kitchen")


def test_thermostat_without_furnace():
    back = get_profile("Miramar_2020_3202").thermostats[1]
    assert back == ThermostatDevice(1, 29, 30, 31, None, None, "Back")


def test_newmar_awning_times():
    (awning,) = get_profile("Newmar_EX_2022").awnings
    assert awning == AwningDevice(5, 6, 23000, 7000, 28000, 7000, "Front Awning")


def test_profiles_without_awnings_have_empty_tuple():
    assert get_profile("Tiffin_2019_34PA").awnings == ()


def test_switch_type_values_in_profile():
    switches = {s.name: s for s in get_profile("Jayco_2023_Terrain").switches}
    assert switches["Spotlight"].type.value == 0
    assert switches["Main Ceiling Lights"].type.value == 1
    assert switches["Awning Extend"].type.value == 2
    assert switches["Awning Extend"].type is SwitchType.SWITCH


def test_profiles_are_immutable():
    profile = get_profile("Aria_2019_3901")
    with pytest.raises(dataclasses.FrozenInstanceError):
        profile.name = "changed"
    assert get_profile("Aria_2019_3901").name == "Aria_2019_3901"


def test_bridge_config_defaults():
    config = BridgeConfig()
    assert config.source_address == 145
    assert config.profile.name == "Newmar_EX_2022"
    assert config.create_batteries is False
    assert config.mac_address is None


def test_bridge_config_accepts_profile_name():
    config = BridgeConfig(profile="Miramar_2020_3202", create_batteries=True)
    assert isinstance(config.profile, CoachProfile)
    assert config.profile.name == "Miramar_2020_3202"


@pytest.mark.parametrize("address", [-1, 256])
def test_bridge_config_rejects_bad_source_address(address):
    with pytest.raises(ValueError):
        BridgeConfig(source_address=address)


def test_bridge_config_rejects_bad_mac():
    with pytest.raises(ValueError):
        BridgeConfig(mac_address=b"\x02\x00\x00")


def test_bridge_config_keeps_valid_mac():
    mac = bytes([0x02, 0x00, 0x00, 0x00, 0x00, 0x01])
    assert BridgeConfig(mac_address=mac).mac_address == mac


def test_bridge_config_unknown_profile_name():
    with pytest.raises(KeyError):
        BridgeConfig(profile="Unknown")