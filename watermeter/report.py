import time

from .data import Reading, MetricKind


class MeterReporter:
  """
      Turns one accumulator into a set of readings for the exporters, and
      keeps track of what the accumulator's hooks last said.
  """

  def __init__(self, name, accumulator, flow_windows_s=None, log=None, clock=time.time):
    self.name = name
    self.acc = accumulator
    self.flow_windows_s = dict(flow_windows_s or {"flow_1m": 60})
    self.log = log or accumulator.log
    self.clock = clock

    self.last_change_at = 0
    self.last_usage_at = 0
    self.usage_units = accumulator.get_total()
    self.usage_rate = 0.0

    accumulator.on_change = self.on_change
    accumulator.on_usage = self.on_usage

  def on_change(self):
    self.last_change_at = self.clock()

  def on_usage(self, units, rate):
    self.last_usage_at = self.clock()
    self.usage_units = units
    self.usage_rate = rate
    self.log.inf("{}: {} units, {:.2f}/min", self.name, units, rate)

  def readings(self, after=0):
    """ Current readings of the meter, or nothing if unchanged since `after` """
    if after and self.last_change_at < after:
      return ()

    at = self.clock()
    ret = [
      Reading(MetricKind.COUNTER, self.name, "volume", self.acc.get_total(),
        "Units through the meter", at)
    ]

    for rname, window_s in self.flow_windows_s.items():
      ret.append(Reading(MetricKind.GAUGE, self.name, rname, self.acc.get_flow(window_s),
        f"Average flow (units/min) over {window_s}s", at))

    ret.append(Reading(MetricKind.GAUGE, self.name, "usage_rate", self.usage_rate,
      "Flow (units/min) implied by the last whole unit", self.last_usage_at))

    return tuple(ret)

  def as_dict(self, after=0):
    return {r.name: r.value for r in self.readings(after)}
