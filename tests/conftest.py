import time
import pytest

from watermeter import MemoryLogger


class FakeClock:
  """ A settable stand-in for time.monotonic """

  def __init__(self, start=1000.0):
    self.t = start

  def __call__(self):
    return self.t

  def advance(self, seconds):
    self.t += seconds
    return self.t


def wait_until(pred, timeout_s=2.0):
  """ Hooks run on their own threads, so give them a moment """
  deadline = time.monotonic() + timeout_s
  while time.monotonic() < deadline:
    if pred():
      return True
    time.sleep(0.005)
  return pred()


@pytest.fixture
def clock():
  return FakeClock()


@pytest.fixture
def memlog():
  return MemoryLogger("test")
