import json
import math
import time
import aiomqtt

from aiohttp import web
from enum import Enum

from watermeter import MetricKind, logger


OM_PREFIX = "watermeter"


def adjust_value(val):
  match val:
    case float() if not math.isfinite(val):
      return None
    case float():
      return round(val, 3)
    case Enum():
      return val.name.lower()
    case _:
      return val


def om_value(val):
  match val:
    case float() if math.isnan(val):
      return "NaN"
    case float() if math.isinf(val):
      return "+Inf" if val > 0 else "-Inf"
    case float():
      return repr(round(val, 6))
    case _:
      return str(val)


def record_to_om_name(rec):
  om_name = f"{OM_PREFIX}_{rec.name}"
  if rec.kind == MetricKind.COUNTER and not om_name.endswith('_total'):
    om_name = om_name + "_total"
  return om_name


def record_to_om_family(rec):
  return f"{OM_PREFIX}_{rec.name}"


def record_to_om_string(rec):
  om_name = record_to_om_name(rec)
  ts = f" {round(rec.at)}" if rec.at > 1 else ""
  return f'{om_name}{{meter="{rec.meter}"}} {om_value(rec.value)}{ts}'


def record_to_om_help(rec):
  return f"# HELP {record_to_om_family(rec)} {rec.desc}"


def record_to_om_type(rec):
  typestr = 'unknown'
  match rec.kind:
    case MetricKind.COUNTER:
      typestr = "counter"
    case MetricKind.GAUGE:
      typestr = "gauge"
    case _ :
      pass

  return f"# TYPE {record_to_om_family(rec)} {typestr}"


class MqttPublisher:
  """ Publishes each meter's readings as one JSON object per topic """

  def __init__(self, broker, username, password, prefix, reporters,
      client_factory=aiomqtt.Client, log=None):
    self.reporters = reporters
    self.prefix = tuple(prefix)
    self.log = log or logger("mqtt")
    self.last_publish_at = 0

    self.client_factory = lambda: client_factory(
      hostname=broker,
      username=username,
      password=password,
    )

  def render(self, after=0):
    prefix_str = "/".join(self.prefix)
    rendered = []
    for rep in self.reporters:
      values = rep.as_dict(after=after)
      if not values:
        continue

      topic = f"{prefix_str}/{rep.name}" if prefix_str else rep.name
      payload = {k: adjust_value(v) for k, v in values.items()}
      rendered.append((topic, json.dumps(payload)))

    return rendered

  async def publish(self):
    rendered = self.render(after=self.last_publish_at)
    started_at = time.time()

    if not rendered:
      return 0

    try:
      async with self.client_factory() as mqtt:
        for topic, payload in rendered:
          await mqtt.publish(topic, payload=payload)
    except aiomqtt.MqttError as e:
      # Leave last_publish_at alone so these go out next time
      self.log.err("publish of {} topics failed: {}", len(rendered), e)
      return 0

    self.last_publish_at = started_at
    self.log.dbg("published {} topics", len(rendered))
    return len(rendered)


class OpenMetricPublisher:
  def __init__(self,
      reporters,
      aiohttp_app=None,
      port=8088,
      inc_help_type=True,
    ):
    self.reporters = reporters
    self.port = port
    self.app = aiohttp_app or web.Application()
    self.runner = None
    self.extras = inc_help_type

    async def handle_stats(request):
      return web.Response(
        text="\n".join(self.collect()) + "\n",
        content_type="application/openmetrics-text"
      )

    self.app.add_routes([web.get('/stats', handle_stats)])

  async def start(self):
    # like run_app, but non-blocking
    self.runner = web.AppRunner(self.app)
    await self.runner.setup()
    site = web.TCPSite(self.runner, port=self.port)
    await site.start()

  async def stop(self):
    if self.runner:
      await self.runner.cleanup()
      self.runner = None

  def collect(self):
    readings = [r for rep in self.reporters for r in rep.readings()]
    readings.sort(key=lambda r: (r.name, r.meter))

    prev_family = None
    for r in readings:
      # Output the TYPE/HELP if this is the first of this family
      family = record_to_om_family(r)
      if self.extras and prev_family != family:
        yield record_to_om_type(r)
        if r.desc:
          yield record_to_om_help(r)

      prev_family = family
      yield record_to_om_string(r)

    yield "# EOF"
