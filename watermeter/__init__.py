from .data import Sample, Reading, MetricKind, UNIT_SCALE
from .accumulator import WindowedAccumulator, MIN_SAMPLES
from .logger import LogLevel, TextLogger, MemoryLogger, NullLogger, logger
from .report import MeterReporter
