"""Device records and the coach profiles that describe each supported RV."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum


class SwitchType(IntEnum):
    """Kind of accessory a DC dimmer channel is presented as."""

    LAMP = 0
    DIMMABLE_LAMP = 1
    SWITCH = 2


@dataclass(frozen=True)
class SwitchDevice:
    """A lamp, dimmable lamp or plain switch on one DC dimmer channel."""

    index: int
    type: SwitchType
    name: str


@dataclass(frozen=True)
class FanDevice:
    """A roof fan, optionally with lid-up and lid-down channels."""

    index: int
    up_index: int | None
    down_index: int | None
    name: str


@dataclass(frozen=True)
class ThermostatDevice:
    """An air-conditioning zone, optionally paired with a furnace."""

    cooling_instance: int
    compressor_index: int
    fan_h_index: int
    fan_l_index: int
    furnace_instance: int | None
    combustion_index: int | None
    name: str


@dataclass(frozen=True)
class AwningDevice:
    """A powered awning driven by extend and retract channels."""

    extend_index: int
    retract_index: int
    extend_time_ms: int
    roll_extend_time_ms: int
    retract_time_ms: int
    roll_retract_time_ms: int
    name: str


@dataclass(frozen=True)
class CoachProfile:
    """The full set of devices installed in one coach model."""

    name: str
    description: str
    switches: tuple[SwitchDevice, ...] = ()
    fans: tuple[FanDevice, ...] = ()
    thermostats: tuple[ThermostatDevice, ...] = ()
    awnings: tuple[AwningDevice, ...] = ()


_L = SwitchType.LAMP
_D = SwitchType.DIMMABLE_LAMP
_S = SwitchType.SWITCH


def _switches(*rows: tuple[int, SwitchType, str]) -> tuple[SwitchDevice, ...]:
    return tuple(SwitchDevice(*row) for row in rows)


def _fans(*rows: tuple[int, int, int, str]) -> tuple[FanDevice, ...]:
    return tuple(
        FanDevice(index, None if up == -1 else up, None if down == -1 else down, name)
        for index, up, down, name in rows
    )


def _thermostats(*rows: tuple) -> tuple[ThermostatDevice, ...]:
    return tuple(
        ThermostatDevice(
            cooling,
            compressor,
            fan_h,
            fan_l,
            None if furnace == -1 else furnace,
            None if combustion == -1 else combustion,
            name,
        )
        for cooling, compressor, fan_h, fan_l, furnace, combustion, name in rows
    )


def _awnings(*rows: tuple) -> tuple[AwningDevice, ...]:
    return tuple(AwningDevice(*row) for row in rows)


_PROFILES: dict[str, CoachProfile] = {
    profile.name: profile
    for profile in (
        CoachProfile(
            name="Aria_2019_3901",
            description="2020 Thor Aria 3901",
            switches=_switches(
                (1, _D, "Living Room"),
                (2, _D, "Kitchen"),
                (3, _L, "Cab Ceiling"),
                (4, _L, "Rear Bathroom Ceiling"),
                (5, _L, "Aisle"),
                (6, _D, "Bedroom Ceiling"),
                (7, _L, "Cargo"),
                (9, _L, "Under Cabinet"),
                (10, _L, "Theater Seats"),
                (12, _L, "Mid Bathroom Ceiling"),
                (13, _L, "Rear Bathroom Vanity?"),
                (14, _L, "Sofa"),
                (17, _S, "TV Up"),
                (18, _S, "TV Down"),
                (60, _L, "Awning"),
            ),
            fans=_fans(
                (21, 25, 26, "Kitchen"),
                (22, 27, 28, "Mid Bathroom"),
                (23, 29, 30, "Rear Bathroom"),
            ),
            thermostats=_thermostats(
                (0, 37, 38, 39, 2, 33, "Front"),
                (1, 45, 46, 47, -1, -1, "Back"),
            ),
        ),
        CoachProfile(
            name="Jayco_2023_Terrain",
            description="2023 Jayco Terrain 19Y",
            switches=_switches(
                (1, _L, "Spotlight"),
                (32, _D, "Main Ceiling Lights"),
                (34, _D, "Bunk Accent Lights"),
                (24, _D, "Bed Ceiling Lights"),
                (22, _D, "Kitchen Counter Lights"),
                (35, _D, "Bench Lights"),
                (25, _D, "Cargo Lights"),
                (21, _L, "Awning Lights"),
                (23, _L, "Step Lights"),
                (3, _S, "Awning Extend"),
                (4, _S, "Awning Retract"),
                (8, _S, "Grey Water Tank Heater"),
                (11, _S, "Fan High"),
                (12, _S, "Fan Low"),
                (43, _S, "A/C Cool"),
                (44, _S, "Water Pump"),
            ),
            fans=_fans((20, 51, 52, "Kitchen")),
            thermostats=_thermostats((0, 25, 26, 27, 2, 33, "Front")),
        ),
        CoachProfile(
            name="Miramar_2020_3202",
            description="2020 Thor Miramar 32.2",
            switches=_switches(
                (1, _D, "Living Room"),
                (2, _D, "Hall"),
                (4, _D, "Bedroom"),
                (16, _L, "Kitchen Counter"),
                (17, _L, "Sofa"),
                (18, _L, "Bathroom"),
                (24, _L, "Cargo"),
                (39, _L, "Steps"),
                (57, _L, "Awning Light"),
                (59, _L, "Vanity"),
                (23, _S, "Water Pump"),
            ),
            fans=_fans(
                (20, 51, 52, "Kitchen"),
                (21, -1, -1, "Bathroom"),
            ),
            thermostats=_thermostats(
                (0, 25, 26, 27, 2, 33, "Front"),
                (1, 29, 30, 31, -1, -1, "Back"),
            ),
            awnings=_awnings((5, 6, 23 * 1000, 7 * 1000, 28 * 1000, 7 * 1000, "Awning")),
        ),
        CoachProfile(
            name="Newmar_EX_2022",
            description="2022 Newmar Essex 4551",
            switches=_switches(
                (1, _D, "Living Room"),
                (2, _D, "Hall"),
                (4, _D, "Bedroom"),
                (16, _L, "Kitchen Counter"),
                (17, _L, "Sofa"),
                (18, _L, "Bathroom"),
                (24, _L, "Cargo"),
                (39, _L, "Steps"),
                (57, _L, "Awning Light"),
                (59, _L, "Vanity"),
                (191, _S, "Door locks"),
                (250, _S, "Water Pump"),
            ),
            fans=_fans(
                (20, 51, 52, "Kitchen"),
                (21, -1, -1, "Bathroom"),
            ),
            thermostats=_thermostats(
                (0, 103, 26, 27, 2, 33, "Front"),
                (1, 207, 28, 29, 3, 34, "Mid"),
                (2, 97, 30, 31, -1, -1, "Rear"),
            ),
            awnings=_awnings(
                (5, 6, 23 * 1000, 7 * 1000, 28 * 1000, 7 * 1000, "Front Awning")
            ),
        ),
        CoachProfile(
            name="Tiffin_2019_34PA",
            description="2019 Tiffin Open Road 34PA",
            switches=_switches(
                (1, _L, "Ceiling Light"),
                (2, _L, "Entry Light"),
                (3, _L, "Task Light"),
                (4, _L, "Hall Light"),
                (5, _L, "Bedroom Light"),
                (6, _L, "Bathroom Light"),
                (8, _L, "Floor Light"),
                (9, _L, "Dining Room Light"),
                (10, _L, "Living Room Sconce"),
                (11, _L, "TV Accent Light"),
                (12, _L, "Awning Light"),
                (94, _L, "Porch Light"),
                (33, _S, "Ceiling Fan"),
                (93, _S, "Water Pump"),
                (95, _S, "Electric Water Heater"),
                (96, _S, "Gas Water Heater"),
            ),
            fans=_fans(
                (23, 21, 22, "Kitchen Fan"),
                (19, 17, 18, "Bathroom Fan"),
            ),
            thermostats=_thermostats(
                (0, 25, 26, 27, 3, 35, "Front AC"),
                (2, 29, 30, 31, 4, 36, "Bedroom AC"),
            ),
        ),
    )
}

DEFAULT_PROFILE = "Newmar_EX_2022"
DEFAULT_SOURCE_ADDRESS = 145


def profile_names() -> tuple[str, ...]:
    """Return the names of all known coach profiles, sorted."""
    return tuple(sorted(_PROFILES))


def get_profile(name: str) -> CoachProfile:
    """Return the coach profile called *name* (case-insensitive)."""
    for key, profile in _PROFILES.items():
        if key.lower() == name.lower():
            return profile
    raise KeyError(f"unknown coach profile {name!r}; known: {', '.join(profile_names())}")


@dataclass
class BridgeConfig:
    """Settings for one bridge installation."""

    profile: CoachProfile = field(default_factory=lambda: get_profile(DEFAULT_PROFILE))
    ssid: str | None = None
    wifi_password: str | None = None
    source_address: int = DEFAULT_SOURCE_ADDRESS
    create_batteries: bool = False
    skip_wifi_credentials: bool = False
    mac_address: bytes | None = None

    def __post_init__(self) -> None:
        if isinstance(self.profile, str):
            self.profile = get_profile(self.profile)
        if not 0 <= self.source_address <= 0xFF:
            raise ValueError(f"source address {self.source_address} is not a byte")
        if self.mac_address is not None:
            self.mac_address = bytes(self.mac_address)
            if len(self.mac_address) != 6:
                raise ValueError("MAC address must be 6 bytes long")