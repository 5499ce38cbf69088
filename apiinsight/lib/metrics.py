"""Prometheus-compatible self-observability metrics.

The ingest path reports every accepted event through a ``MetricsRecorder``
that the process owns and passes in explicitly. ``PrometheusMetricsRecorder``
keeps its collectors in its own ``CollectorRegistry`` so tests and multiple
app instances never collide on the global default registry.
"""

from typing import Dict, Iterable, Mapping, Optional, Protocol

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client.metrics_core import Metric

REQUESTS_TOTAL = 'requests_total'
REQUEST_DURATION_SECONDS = 'request_duration_seconds'

DURATION_BUCKETS = [0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0]


class MetricsRecorder(Protocol):
  """Capability for recording counters and histograms."""

  def increment_counter(self, name: str, labels: Mapping[str, str], amount: float = 1) -> None: ...

  def observe_histogram(self, name: str, value: float, labels: Mapping[str, str]) -> None: ...


class NullMetricsRecorder:
  """Recorder that discards everything."""

  def increment_counter(self, name: str, labels: Mapping[str, str], amount: float = 1) -> None:
    pass

  def observe_histogram(self, name: str, value: float, labels: Mapping[str, str]) -> None:
    pass


class PrometheusMetricsRecorder:
  """Recorder backed by prometheus_client collectors.

  Counter and histogram updates in prometheus_client are lock-protected per
  child and never block on I/O, so concurrent ingest requests can share one
  recorder.
  """

  def __init__(self, registry: Optional[CollectorRegistry] = None, namespace: str = 'apiinsight'):
    self.registry = registry or CollectorRegistry()
    self._counters: Dict[str, Counter] = {
      REQUESTS_TOTAL: Counter(
        REQUESTS_TOTAL,
        'Total number of ingested API requests.',
        ['project', 'route', 'method', 'status'],
        namespace=namespace,
        registry=self.registry,
      ),
    }
    self._histograms: Dict[str, Histogram] = {
      REQUEST_DURATION_SECONDS: Histogram(
        REQUEST_DURATION_SECONDS,
        'Histogram of ingested API request durations in seconds.',
        ['project', 'route', 'method'],
        namespace=namespace,
        buckets=DURATION_BUCKETS,
        registry=self.registry,
      ),
    }

  def increment_counter(self, name: str, labels: Mapping[str, str], amount: float = 1) -> None:
    self._counters[name].labels(**labels).inc(amount)

  def observe_histogram(self, name: str, value: float, labels: Mapping[str, str]) -> None:
    self._histograms[name].labels(**labels).observe(value)


def record_ingested_event(
  recorder: MetricsRecorder,
  project: str,
  route: str,
  method: str,
  status: int,
  duration_ms: int,
) -> None:
  """Record one accepted event.

  Args:
      recorder: Metrics recorder owned by the process
      project: Project (API key name) the event was ingested under
      route: Request path reported by the producer
      method: HTTP method reported by the producer
      status: HTTP status code reported by the producer
      duration_ms: Request duration in milliseconds
  """
  recorder.increment_counter(
    REQUESTS_TOTAL,
    {'project': project, 'route': route, 'method': method, 'status': str(status)},
  )
  recorder.observe_histogram(
    REQUEST_DURATION_SECONDS,
    duration_ms / 1000.0,
    {'project': project, 'route': route, 'method': method},
  )


class _ProjectFilteredCollector:
  """Registry view yielding only one project's samples."""

  def __init__(self, registry: CollectorRegistry, project: str):
    self.registry = registry
    self.project = project

  def collect(self) -> Iterable[Metric]:
    for family in self.registry.collect():
      if not any('project' in sample.labels for sample in family.samples):
        yield family
        continue

      kept = [s for s in family.samples if s.labels.get('project') == self.project]
      if not kept:
        continue

      filtered = Metric(family.name, family.documentation, family.type, family.unit)
      filtered.samples = kept
      yield filtered


def render_project_metrics(registry: CollectorRegistry, project: str) -> bytes:
  """Prometheus text exposition filtered to ``project``.

  Families without a ``project`` label are kept whole; project-labelled
  families keep only the matching samples and are dropped when none match.
  """
  return generate_latest(_ProjectFilteredCollector(registry, project))
