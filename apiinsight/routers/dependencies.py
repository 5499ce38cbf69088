"""Request-scoped accessors for process-owned objects on ``app.state``."""

from fastapi import Request

from apiinsight.lib.config import Settings
from apiinsight.lib.metrics import MetricsRecorder


def get_app_settings(request: Request) -> Settings:
  return request.app.state.settings


def get_metrics_recorder(request: Request) -> MetricsRecorder:
  return request.app.state.metrics_recorder
