from pulse_decoder import PulseDecoder
from watermeter import LogLevel

SampleConfig = {
  # Pulse counters keyed off of their address (or UUID if it's a mac)
  # units_per_pulse is in 1/1000ths of a unit: 100 -> 0.1 gallon per pulse
  'meters': {
    "FB:23:8C:6C:8C:B0": PulseDecoder("house", units_per_pulse=100, initial=0),
    "D3:EF:7F:F0:46:3D": PulseDecoder("irrigation", units_per_pulse=1000, initial=0),
  },

  # How long each meter keeps its (time, total) samples around
  "retention_s": 600,

  # Published flow readings: name -> lookback window
  "flow_windows_s": {"flow_1m": 60, "flow_5m": 300},

  # If a counter broadcasts faster than this, the reading is discarded
  "ble_throttle_s": 1,

  # The prefix on the MQTT broadcast to apply to all messages
  "mqtt_prefix": "house/water/",

  # MQTT Broker address
  "mqtt_broker_addr": "mqtt.broker.address.com",

  # Broker username (can be None)
  "mqtt_user": "mosquitto",

  # Broker password (can be None)
  "mqtt_pass": "hunter2",

  # Publish a batch of MQTT messages on this interval
  "mqtt_pub_interval_s": 30,

  # OpenMetrics endpoint
  "om_port": 8088,

  # ERR, INF or DBG
  "log_level": "INF",
}

CurrentConfig = SampleConfig


DEFAULTS = {
  "retention_s": 60,
  "flow_windows_s": {"flow_1m": 60},
  "ble_throttle_s": 0,
  "mqtt_prefix": "",
  "mqtt_user": None,
  "mqtt_pass": None,
  "mqtt_pub_interval_s": 30,
  "om_port": 8088,
  "log_level": "INF",
}


class ConfigError(ValueError):
  pass


def _positive(config_map, key):
  val = config_map[key]
  if not isinstance(val, (int, float)) or isinstance(val, bool) or val <= 0:
    raise ConfigError(f"'{key}' must be a positive number, got {val!r}")
  return val


def validate(config_map):
  """ Returns a copy of `config_map` with defaults filled in, or raises """
  ret = dict(DEFAULTS)
  ret.update(config_map)

  for key in ("meters", "mqtt_broker_addr"):
    if not ret.get(key):
      raise ConfigError(f"'{key}' is required")

  meters = {}
  for addr, decoder in ret["meters"].items():
    if not isinstance(decoder, PulseDecoder):
      raise ConfigError(f"Meter {addr} is not a PulseDecoder: {decoder!r}")
    meters[addr.upper()] = decoder

  names = [d.name for d in meters.values()]
  if len(set(names)) != len(names):
    raise ConfigError(f"Meter names must be unique: {names}")
  ret["meters"] = meters

  _positive(ret, "retention_s")
  _positive(ret, "mqtt_pub_interval_s")

  windows = ret["flow_windows_s"]
  if not windows:
    raise ConfigError("'flow_windows_s' must name at least one window")
  for wname, window_s in windows.items():
    if not isinstance(window_s, (int, float)) or window_s <= 0:
      raise ConfigError(f"Flow window '{wname}' must be positive, got {window_s!r}")

  ret["mqtt_prefix"] = tuple(p for p in ret["mqtt_prefix"].split("/") if p)

  try:
    ret["log_level"] = LogLevel.parse(ret["log_level"])
  except ValueError as e:
    raise ConfigError(str(e)) from None

  return ret
