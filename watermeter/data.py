from dataclasses import dataclass
from enum import Enum


# The running total is kept in 1/1000ths of a display unit (gallon, litre...)
UNIT_SCALE = 1000


class MetricKind(Enum):
  COUNTER = 1
  GAUGE = 2


@dataclass(frozen=True)
class Sample:
  """ The cumulative total (in sub-units) as seen at `at` seconds """
  at: float
  total: int

  def __str__(self):
    return f"at: {self.at:.3f}, total: {self.total}"


@dataclass(frozen=True)
class Reading:
  """ One exported value of a meter """
  kind: MetricKind
  meter: str
  name: str
  value: any
  desc: str
  at: float
