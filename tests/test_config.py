import pytest

from config import validate, ConfigError, SampleConfig
from pulse_decoder import PulseDecoder
from watermeter import LogLevel


def minimal(**kwargs):
  ret = {
    "meters": {"aa:bb": PulseDecoder("house", units_per_pulse=100)},
    "mqtt_broker_addr": "localhost",
  }
  ret.update(kwargs)
  return ret


def test_sample_config_is_valid():
  cfg = validate(SampleConfig)
  assert cfg["mqtt_prefix"] == ("house", "water")
  assert cfg["log_level"] == LogLevel.INF


def test_defaults_are_filled_in():
  cfg = validate(minimal())
  assert cfg["retention_s"] == 60
  assert cfg["flow_windows_s"] == {"flow_1m": 60}
  assert cfg["mqtt_prefix"] == ()
  assert list(cfg["meters"]) == ["AA:BB"]


@pytest.mark.parametrize("override, match", [
  ({"meters": {}}, "meters"),
  ({"mqtt_broker_addr": None}, "mqtt_broker_addr"),
  ({"meters": {"aa": "nope"}}, "PulseDecoder"),
  ({"retention_s": 0}, "retention_s"),
  ({"mqtt_pub_interval_s": "30"}, "mqtt_pub_interval_s"),
  ({"flow_windows_s": {}}, "flow_windows_s"),
  ({"flow_windows_s": {"flow_0": 0}}, "flow_0"),
  ({"log_level": "LOUD"}, "LOUD"),
])
def test_invalid_config(override, match):
  with pytest.raises(ConfigError, match=match):
    validate(minimal(**override))


def test_duplicate_meter_names():
  meters = {
    "aa": PulseDecoder("house", units_per_pulse=1),
    "bb": PulseDecoder("house", units_per_pulse=1),
  }
  with pytest.raises(ConfigError, match="unique"):
    validate(minimal(meters=meters))
