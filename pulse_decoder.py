import time
import struct
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from watermeter import logger


class PulseDecoder:
  """
      Decodes a BLE pulse counter's advertisement into the number of
      sub-units that passed since the previous advertisement.

      The counter broadcasts its cumulative pulse count as a big-endian uint32
      following a one byte prefix in its service data.
  """

  SVC_DATA_KEY = "0000fe10-0000-1000-8000-00805f9b34fb"
  DATA_PREFIX = b"\x01"

  def __init__(self, name, units_per_pulse, initial=0, svc_data_key=None, log=None):
    if units_per_pulse <= 0:
      raise ValueError(f"{name}: units_per_pulse must be positive")

    self.name = name
    self.units_per_pulse = int(units_per_pulse)
    self.initial = int(initial)
    self.svc_data_key = svc_data_key or self.SVC_DATA_KEY
    self.log = log or logger(name)

    self.throttle_expire = 0
    self.throttle_s = 0
    self.last_count = None

  def should_throttle(self):
    if self.throttle_s <= 0:
      return False

    now = time.time()
    if now > self.throttle_expire:
      self.throttle_expire = now + self.throttle_s
      return False
    return True

  def parse_count(self, data):
    """ The cumulative pulse count in `data`, or None if it isn't ours """
    if data and data.startswith(self.DATA_PREFIX) and len(data) >= 5:
      return struct.unpack(">I", data[1:5])[0]
    return None

  def decode(self, device: BLEDevice, adv_data: AdvertisementData):
    """ Sub-units since the last beacon, or None if undecodable """
    count = self.parse_count(adv_data.service_data.get(self.svc_data_key))
    if count is None:
      return None

    return self.delta(count)

  def delta(self, count):
    last = self.last_count
    self.last_count = count

    if last is None:
      self.log.inf("baseline at {} pulses", count)
      return 0

    if count < last:
      # Counter rebooted or wrapped, start over from here
      self.log.err("pulse count went backwards {} -> {}, re-baselining", last, count)
      return 0

    return (count - last) * self.units_per_pulse
