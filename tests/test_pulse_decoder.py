import struct
from types import SimpleNamespace
import pytest

from pulse_decoder import PulseDecoder


def adv(count, key=PulseDecoder.SVC_DATA_KEY, prefix=PulseDecoder.DATA_PREFIX):
  return SimpleNamespace(service_data={key: prefix + struct.pack(">I", count) + b"\x00"})


DEVICE = SimpleNamespace(address="aa:bb:cc:dd:ee:ff", name="meter")


def test_first_beacon_is_baseline(memlog):
  dec = PulseDecoder("house", units_per_pulse=100, log=memlog)
  assert dec.decode(DEVICE, adv(1234)) == 0
  assert dec.last_count == 1234


def test_delta_in_sub_units(memlog):
  dec = PulseDecoder("house", units_per_pulse=100, log=memlog)
  dec.decode(DEVICE, adv(10))
  assert dec.decode(DEVICE, adv(10)) == 0
  assert dec.decode(DEVICE, adv(13)) == 300
  assert dec.decode(DEVICE, adv(23)) == 1000


def test_counter_reset_rebaselines(memlog):
  dec = PulseDecoder("house", units_per_pulse=100, log=memlog)
  dec.decode(DEVICE, adv(500))
  assert dec.decode(DEVICE, adv(2)) == 0
  assert dec.decode(DEVICE, adv(4)) == 200
  assert any("backwards" in t for t in memlog.texts())


@pytest.mark.parametrize("data", [
  {},
  {"other-key": b"\x01\x00\x00\x00\x05"},
  {PulseDecoder.SVC_DATA_KEY: b"\x02\x00\x00\x00\x05"},
  {PulseDecoder.SVC_DATA_KEY: b"\x01\x00\x05"},
])
def test_foreign_data_is_undecodable(memlog, data):
  dec = PulseDecoder("house", units_per_pulse=100, log=memlog)
  assert dec.decode(DEVICE, SimpleNamespace(service_data=data)) is None
  assert dec.last_count is None


def test_custom_service_key(memlog):
  dec = PulseDecoder("house", units_per_pulse=1, svc_data_key="abc", log=memlog)
  dec.decode(DEVICE, adv(1, key="abc"))
  assert dec.decode(DEVICE, adv(6, key="abc")) == 5


def test_rejects_bad_units_per_pulse():
  with pytest.raises(ValueError, match="units_per_pulse"):
    PulseDecoder("house", units_per_pulse=0)


def test_throttle(memlog):
  dec = PulseDecoder("house", units_per_pulse=1, log=memlog)
  dec.throttle_s = 60
  assert dec.should_throttle() is False
  assert dec.should_throttle() is True
