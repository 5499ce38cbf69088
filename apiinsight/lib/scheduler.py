"""Periodic background jobs.

Each job is a single asyncio task. The job body is synchronous database work
and runs in a worker thread. Passes start on a fixed-rate schedule measured
from job start, so slow passes do not push later ones back. A pass that
overruns its slot never overlaps the next one: the next pass starts as soon
as it returns, and any further slots it covered are skipped.
"""

import asyncio
from typing import Callable, Optional

from apiinsight.lib.distributed_tracing import generate_correlation_id
from apiinsight.lib.errors import SchedulingError
from apiinsight.lib.structured_logger import StructuredLogger, log_event

logger = StructuredLogger(__name__)


class PeriodicJob:
  """Run ``tick`` every ``interval_seconds`` after an initial startup pass.

  Args:
      name: Job name used in logs
      interval_seconds: Time between the starts of consecutive passes
      tick: Body run on every interval
      on_start: Body for the startup pass (defaults to ``tick``)
  """

  def __init__(
    self,
    name: str,
    interval_seconds: float,
    tick: Callable[[], object],
    on_start: Optional[Callable[[], object]] = None,
  ):
    self.name = name
    self.interval_seconds = interval_seconds
    self.tick = tick
    self.on_start = on_start or tick
    self.runs = 0
    self.failures = 0
    self._task: Optional[asyncio.Task] = None

  async def run_once(self, body: Callable[[], object]) -> bool:
    """Run one pass; failures are logged and never propagate."""
    generate_correlation_id()
    self.runs += 1
    try:
      await asyncio.to_thread(body)
      return True
    except Exception as e:
      self.failures += 1
      error = SchedulingError(f'{self.name} pass failed: {e}')
      logger.error(error.message, exc_info=True, job=self.name)
      log_event(
        'scheduler.pass_failed',
        level='ERROR',
        context={'job': self.name, 'error_type': type(e).__name__, 'error_message': str(e)},
      )
      return False

  async def run(self) -> None:
    loop = asyncio.get_running_loop()
    next_run = loop.time()
    await self.run_once(self.on_start)
    while True:
      next_run += self.interval_seconds
      delay = next_run - loop.time()
      if delay > 0:
        await asyncio.sleep(delay)
      else:
        # Overran one or more slots: run now, keep later passes on the grid
        next_run += (-delay // self.interval_seconds) * self.interval_seconds
      await self.run_once(self.tick)

  def start(self) -> asyncio.Task:
    if self._task is None or self._task.done():
      self._task = asyncio.create_task(self.run(), name=f'periodic:{self.name}')
      logger.info('Background job started', job=self.name)
    return self._task

  async def stop(self) -> None:
    if self._task is None:
      return
    self._task.cancel()
    try:
      await self._task
    except asyncio.CancelledError:
      pass
    self._task = None
    logger.info('Background job stopped', job=self.name)
