# rvbridge

Tools for bridging home-automation accessories (lights, switches, roof fans,
thermostats, awnings and battery monitors) to an RV-C CAN bus.

## What is in the package

- **Coach profiles** (`rvbridge.devices`): the switch, fan, thermostat and
  awning layouts of several coaches (`Aria_2019_3901`, `Jayco_2023_Terrain`,
  `Miramar_2020_3202`, `Newmar_EX_2022`, `Tiffin_2019_34PA`).
  `get_profile(name)` looks one up case-insensitively and raises `KeyError`
  for an unknown name; `profile_names()` lists them sorted. `BridgeConfig`
  holds the chosen profile (default `Newmar_EX_2022`), the bus source address
  (default 145), whether to create battery devices, and optional network and
  MAC settings, and validates them.
- **RV-C encoding** (`rvbridge.rvc`): the `Dgn` numbers, `DCDimmerCmd`,
  `ACMode`, `ThermostatMode` and `FanMode` enums; identifier packing with
  `make_msg` and `get_msg_bits`; temperature conversions (`conv_to_temp_c`,
  `conv_from_temp_c`, `temp_c_from_temp_f`, `deg_c_from_deg_f`); the
  `CanFrame` type with `dgn()`, `source()` and `priority()`; `init_packet`;
  a paced, bounded outgoing `PacketQueue` (50 ms between frames, 5 ms for
  short-gap frames); and `RVCSender`, which builds dimmer, on/off, lamp-level
  and thermostat command frames and queues them.
- **Accessories** (`rvbridge.accessories`): `Characteristic` (a value plus a
  controller-requested pending value, checked against range and valid
  values), and `RVSwitch`, `RVRoofFan`, `RVHVACFan`, `RVThermostat`,
  `RVBattery` and `RVAwning`. Their `update()` methods turn requested changes
  into RV-C commands; their `set_level`, `set_info`, `set_ambient_temp` and
  `set_voltage` methods apply bus status to accessory state. Awning position
  is estimated from motor run time in `RVAwning.loop()`.
- **The bridge** (`rvbridge.bridge`): `Bridge` builds the accessories of a
  configuration, routes received frames to them with `process_packet`,
  produces log lines for a frame with `describe_packet` according to a
  `PacketPrintMode`, runs console commands with `handle_command`, and
  advances one pass of the main loop with `poll()` (frames waiting in
  `Bridge.inbox` are processed there). `parse_value_pair` and
  `parse_next_value` parse command arguments.
- **Connection tracking** (`rvbridge.connection`): `WifiMonitor` records
  connection status changes (`HSStatus`) and, after a loss, checks a
  caller-supplied connectivity test at most once per interval; `Millis64`
  extends a wrapping 32-bit millisecond counter to 64 bits.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command line

```
rvbridge [--profile NAME] [--source-address N] [--batteries] [--verbose]
rvbridge --list-profiles
```

Prints the devices it creates for the profile, then reads console commands
from standard input, one per line, printing their output and running one
`poll()` after each. At end of input it waits until the outgoing queue is
empty. `--list-profiles` prints each profile with its description.

Console commands:

| Command | Meaning |
|---------|---------|
| `?` | list the commands |
| `l<index>=<level>,...` | apply a dimmer level to the devices on a channel |
| `s<index>=<state>,...` | apply an on/off state (0-1, scaled to full brightness) |
| `o<index>=<state>,...` | queue an on/off command for a channel |
| `a<index>=<tempF>,...` | set the ambient temperature of a thermostat |
| `w<0-1>` | disable / enable CAN-bus writes |
| `p<0-3>` | packet logging: 0 off, 1 on, 2 unknown only, 3 known only |
| `t<index>=<mode>,<tempF>[,<fanmode>,<fanspeed>]` | set thermostat info |

Bad arguments print an `error:` line.

## Library use

```python
from rvbridge.bridge import Bridge
from rvbridge.devices import BridgeConfig, profile_names
from rvbridge.rvc import PacketQueue, RVCSender

sent = []
queue = PacketQueue(writer=sent.append)
config = BridgeConfig(profile=profile_names()[0])
bridge = Bridge(config, RVCSender(queue, config.source_address))

bridge.handle_command("l1=200")
bridge.switches[0].on.request(False)
bridge.poll()          # runs update(), queues the command and may send it
```

A `PacketQueue` takes a writer callable for each outgoing `CanFrame` and a
millisecond clock; without a writer, or with writes disabled, frames are only
logged as simulated sends.

## What it does not do

- It has no CAN-bus interface of its own. The `rvbridge` command creates its
  queue without a writer, so every outgoing frame is only logged, and nothing
  is read from a bus; library users supply the writer and place received
  frames in `Bridge.inbox`.
- It does not run a HomeKit accessory server or pair with a controller;
  controller requests are made by calling `Characteristic.request()`.
- It does not join or manage a Wi-Fi network; `WifiMonitor` only tracks the
  state it is told about.