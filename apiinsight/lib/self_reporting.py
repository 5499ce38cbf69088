"""Self-reporting of this instance's own HTTP traffic.

When an internal API key is configured, every handled request (other than the
ingest, metrics and health endpoints) is posted back to this instance's own
ingest endpoint so API Insight shows up in its own dashboards.

Delivery is best-effort: submissions go into a bounded queue drained by a
fixed number of workers, each POST has a fixed timeout, a full queue drops
the event, and delivery failures are intentionally silent (debug log only).
Self-reporting must never slow down or fail the request being reported.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

EXCLUDED_PATHS = frozenset({'/v1/events', '/v1/metrics', '/metrics', '/healthz'})


def build_self_report_event(
  path: str, method: str, status: int, duration_ms: int, remote_ip: str
) -> Dict[str, Any]:
  return {
    'timestamp': datetime.now(timezone.utc).isoformat(),
    'path': path,
    'method': method,
    'status': status,
    'duration_ms': duration_ms,
    'remote_ip': remote_ip,
    'attributes': {'env': 'internal'},
  }


class SelfReporter:
  """Bounded background queue posting events to the ingest endpoint.

  Args:
      ingest_url: Absolute URL of POST /v1/events
      api_key: Bearer token for the internal API key
      max_pending: Queue capacity; submissions beyond it are dropped
      workers: Number of concurrent delivery workers
      timeout_seconds: Timeout for each POST
      transport: Optional httpx transport (tests)
  """

  def __init__(
    self,
    ingest_url: str,
    api_key: str,
    max_pending: int = 100,
    workers: int = 2,
    timeout_seconds: float = 2.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
  ):
    self.ingest_url = ingest_url
    self.api_key = api_key
    self.workers = workers
    self.timeout_seconds = timeout_seconds
    self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
    self.dropped = 0
    self.delivered = 0
    self._transport = transport
    self._client: Optional[httpx.AsyncClient] = None
    self._tasks: List[asyncio.Task] = []

  @staticmethod
  def should_report(path: str) -> bool:
    return path not in EXCLUDED_PATHS

  def submit(self, event: Dict[str, Any]) -> bool:
    """Queue an event without waiting; returns False when it was dropped."""
    try:
      self.queue.put_nowait(event)
      return True
    except asyncio.QueueFull:
      self.dropped += 1
      logger.debug('Self-report queue full, dropping event')
      return False

  async def start(self) -> None:
    self._client = httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport)
    self._tasks = [
      asyncio.create_task(self._worker(), name=f'self-report:{i}') for i in range(self.workers)
    ]

  async def stop(self) -> None:
    for task in self._tasks:
      task.cancel()
    for task in self._tasks:
      try:
        await task
      except asyncio.CancelledError:
        pass
    self._tasks = []
    if self._client is not None:
      await self._client.aclose()
      self._client = None

  async def _worker(self) -> None:
    while True:
      event = await self.queue.get()
      try:
        await self._deliver(event)
      finally:
        self.queue.task_done()

  async def _deliver(self, event: Dict[str, Any]) -> None:
    try:
      response = await self._client.post(
        self.ingest_url,
        json={'events': [event]},
        headers={'Authorization': f'Bearer {self.api_key}'},
      )
      response.raise_for_status()
      self.delivered += 1
    except Exception as e:
      # Dropped silently; see module docstring.
      logger.debug(f'Self-report delivery failed: {e}')
