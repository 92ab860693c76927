import math
import threading
import time
from collections import deque

from .data import Sample, UNIT_SCALE
from .logger import logger


# Never prune below this many samples, so a flow query always has two ends
MIN_SAMPLES = 2


class WindowedAccumulator:
  """
      Running total of a flow sensor plus a short, time ordered history of
      (time, total) samples that flow rates are derived from.

      `update()` is driven by the sensor side; `get_total()` and `get_flow()`
      may be called from anywhere. The hooks are called on their own threads
      once the lock is released:

        on_change()            - after every update
        on_usage(units, rate)  - whenever the total crosses a whole unit
  """

  def __init__(self,
      initial=0,
      retention_s=60.0,
      now=time.monotonic,
      on_change=None,
      on_usage=None,
      log=None
    ):
    if initial < 0:
      raise ValueError(f"Initial total must not be negative, got {initial}")

    self.retention_s = retention_s
    self.on_change = on_change
    self.on_usage = on_usage
    self.log = log or logger("watermeter")

    self._now = now
    self._lock = threading.Lock()
    self._total = int(initial)

    first = Sample(self._now(), self._total)
    # Newest first
    self._events = deque((first,))
    self._last_unit = first

  @property
  def last_whole_unit(self):
    with self._lock:
      return self._last_unit

  def history(self):
    """ Snapshot of the retained samples, newest first """
    with self._lock:
      return tuple(self._events)

  def get_raw_total(self):
    with self._lock:
      return self._total

  def get_total(self):
    """ The running total in whole units """
    return self.get_raw_total() // UNIT_SCALE

  def get_flow(self, duration_s):
    """ Average flow (units/min) over the last `duration_s` seconds """
    if duration_s <= 0:
      return 0.0

    with self._lock:
      then = self._now() - duration_s
      end = self._total
      start = end
      for e in self._events:
        if e.at < then:
          break
        start = e.total

    return (end - start) / UNIT_SCALE / (duration_s / 60)

  def update(self, delta):
    """ Record `delta` sub-units passing through the meter """
    if delta < 0:
      raise ValueError(f"Meter total cannot decrease, got delta {delta}")

    usage = None

    with self._lock:
      # Read the clock under the lock so samples stay time ordered
      now = self._now()
      prune = now - self.retention_s
      before = self._total // UNIT_SCALE
      self._total += int(delta)
      after = self._total // UNIT_SCALE

      sample = Sample(now, self._total)
      self._events.appendleft(sample)

      pruned = 0
      while len(self._events) > MIN_SAMPLES and self._events[-1].at < prune:
        self._events.pop()
        pruned += 1

      if after > before:
        usage = (after, self._rate_since_(self._last_unit, sample))
        self._last_unit = sample

    if pruned:
      self.log.dbg("pruned {} samples older than {:.3f}", pruned, prune)

    if self.on_change is not None:
      self._dispatch_(self.on_change)

    if usage is not None:
      self.log.dbg("crossed {} units at {:.3f}/min", *usage)
      if self.on_usage is not None:
        self._dispatch_(self.on_usage, *usage)

  @staticmethod
  def _rate_since_(last, sample):
    volume = (sample.total - last.total) / UNIT_SCALE
    elapsed_min = (sample.at - last.at) / 60

    if elapsed_min <= 0:
      # Volume in no time at all
      return math.inf

    return volume / elapsed_min

  def _dispatch_(self, hook, *args):
    def run():
      try:
        hook(*args)
      except Exception as e:
        self.log.err("hook {} failed: {!r}", getattr(hook, '__name__', hook), e)

    threading.Thread(target=run, daemon=True).start()

  def __repr__(self):
    with self._lock:
      events = tuple(self._events)
      last = self._last_unit
      total = self._total

    rows = ",".join(f"\n\t\t{{ {e} }}" for e in events)
    return (
      f"{self.__class__.__name__}{{\n"
      f"\tretention_s: {self.retention_s},\n"
      f"\ton_usage: {self.on_usage!r},\n"
      f"\ton_change: {self.on_change!r},\n"
      f"\tlast_whole_unit{{ {last} }},\n"
      f"\ttotal: {total},\n"
      f"\tevents {{{rows}\n\t}}\n"
      "}"
    )
