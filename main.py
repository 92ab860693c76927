#!/usr/bin/env python3
import asyncio
from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from watermeter import WindowedAccumulator, MeterReporter, logger

from consumers import MqttPublisher, OpenMetricPublisher


class Ble2Meter:
  """
      Listens for BLE broadcasts from the pulse counters defined in config.py,
      runs each through its own water meter and publishes the totals and flow
      rates to mqtt and an OpenMetrics endpoint.
  """

  def __init__(self, config_map, log=None):
    self.log = log or logger("ble2meter")
    self.known_meters = config_map['meters']

    self.accumulators = {}
    self.reporters = []
    for addr, decoder in self.known_meters.items():
      decoder.throttle_s = config_map["ble_throttle_s"]

      acc = WindowedAccumulator(
        initial=decoder.initial,
        retention_s=config_map["retention_s"],
        log=self.log.scoped(decoder.name)
      )
      self.accumulators[addr] = acc
      self.reporters.append(
        MeterReporter(decoder.name, acc, config_map["flow_windows_s"])
      )

    self.mqtt_exporter = MqttPublisher(
      broker=config_map['mqtt_broker_addr'],
      username=config_map.get('mqtt_user'),
      password=config_map.get('mqtt_pass'),
      prefix=config_map['mqtt_prefix'],
      reporters=self.reporters,
      log=self.log.scoped("mqtt")
    )

    self.mqtt_pub_interval_s = config_map['mqtt_pub_interval_s']

    self.om_server = OpenMetricPublisher(
      self.reporters,
      port=config_map['om_port']
    )

    self.scanner = None
    self.bs_callback = lambda dev, data: self.on_advertise(dev, data)

    self.handled = 0
    self.ignored = 0
    self.throttled = 0
    self.unhandled = 0

  def on_advertise(self, device: BLEDevice, advertisement: AdvertisementData):
    addr = device.address.upper()
    decoder = self.known_meters.get(addr)

    if not decoder:
      self.ignored += 1
      return

    if decoder.should_throttle():
      self.throttled += 1
      return

    delta = decoder.decode(device, advertisement)
    if delta is None:
      self.unhandled += 1
      self.log.dbg("{}: undecodable beacon from {}", decoder.name, addr)
      return

    self.handled += 1
    if delta > 0:
      self.accumulators[addr].update(delta)

  async def run(self):
    self.scanner = BleakScanner(detection_callback=self.bs_callback)
    await self.scanner.start()
    await self.om_server.start()
    self.log.inf("watching {} meters, stats on :{}", len(self.known_meters), self.om_server.port)

    while True:
      await asyncio.sleep(self.mqtt_pub_interval_s)
      await self.mqtt_exporter.publish()

  async def stop(self):
    if self.scanner:
      await self.scanner.stop()
    await self.om_server.stop()


async def dump_names():
  def on_advertise(device: BLEDevice, adv: AdvertisementData):
    if device.name:
      print(f"{device} rssi={adv.rssi} service_data={list(adv.service_data)}")

  scanner = BleakScanner(detection_callback=on_advertise)
  await scanner.start()
  try:
    while True:
      await asyncio.sleep(1)
  finally:
    await scanner.stop()


async def serve(config_map):
  ble2meter = Ble2Meter(config_map)
  try:
    await ble2meter.run()
  finally:
    await ble2meter.stop()


if __name__ == "__main__":
  from config import CurrentConfig, validate
  from watermeter.logger import ROOT
  import sys

  config_map = validate(CurrentConfig)
  ROOT.set_level(config_map['log_level'])

  cmd = sys.argv[1] if len(sys.argv) > 1 else None

  try:
    if cmd == 'scan':
      asyncio.run(dump_names())
    else:
      asyncio.run(serve(config_map))
  except KeyboardInterrupt:
    print("\nBye!")
