from collections import namedtuple
from enum import Enum
import time
import sys


class LogLevel(Enum):
  ERR = 0
  INF = 1
  DBG = 2

  @classmethod
  def parse(cls, name):
    try:
      return cls[name.upper()]
    except KeyError:
      raise ValueError(f"Unknown log level '{name}'") from None


LogEntry = namedtuple('LogEntry', ('level', 'at', 'tag', 'text'))


class BaseLogger:
  def __init__(self, tag="", level=LogLevel.INF):
    self.tag = tag
    self._level_val = level.value

  def set_level(self, new_level):
    self._level_val = new_level.value

  def enabled(self, level):
    return self._level_val >= level.value

  def handle(self, level, at, text):
    pass

  def _log_(self, level, msg, vals):
    if self.enabled(level):
      self.handle(level, time.time(), msg.format(*vals) if vals else msg)

  def __call__(self, msg, *vals):
    self.inf(msg, *vals)

  def dbg(self, msg, *vals):
    self._log_(LogLevel.DBG, msg, vals)

  def inf(self, msg, *vals):
    self._log_(LogLevel.INF, msg, vals)

  def err(self, msg, *vals):
    self._log_(LogLevel.ERR, msg, vals)

  def scoped(self, tag):
    """ A logger of the same kind, tagged with `tag` under this one """
    raise NotImplementedError


class NullLogger(BaseLogger):
  """ Logs nothing successfully """

  def scoped(self, tag):
    return self


class MemoryLogger(BaseLogger):
  """ Keeps every entry around. Handy in tests """

  def __init__(self, tag="", level=LogLevel.DBG, entries=None):
    super().__init__(tag=tag, level=level)
    self.entries = entries if entries is not None else []

  def handle(self, level, at, text):
    self.entries.append(LogEntry(level, at, self.tag, text))

  def scoped(self, tag):
    tag = f"{self.tag}/{tag}" if self.tag else tag
    return MemoryLogger(tag, LogLevel(self._level_val), self.entries)

  def texts(self, level=None):
    return [e.text for e in self.entries if level is None or e.level == level]


class TextLogger(BaseLogger):

  FORMAT = "{level} {hh:02d}:{mm:02d}:{ss:02d}{tag} {text}\n"

  def __init__(self, tag="", level=LogLevel.INF, writeable=None):
    super().__init__(tag=tag, level=level)
    self.writeable = writeable

  def handle(self, level, at, text):
    ts = time.localtime(at)
    out = self.writeable or sys.stderr
    out.write(self.FORMAT.format(
      level=level.name,
      hh=ts.tm_hour, mm=ts.tm_min, ss=ts.tm_sec,
      tag=f" [{self.tag}]" if self.tag else "",
      text=text
    ))

  def scoped(self, tag):
    tag = f"{self.tag}/{tag}" if self.tag else tag
    return TextLogger(tag, LogLevel(self._level_val), self.writeable)


ROOT = TextLogger()


def logger(tag=""):
  return ROOT.scoped(tag) if tag else ROOT
