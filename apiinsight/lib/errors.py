"""Error taxonomy shared by the HTTP layer and background jobs."""


class ApiInsightError(Exception):
  """Base class for errors raised by API Insight services."""

  status_code = 500

  def __init__(self, message: str):
    super().__init__(message)
    self.message = message


class ValidationError(ApiInsightError):
  """Malformed request or no valid events (caller-fixable)."""

  status_code = 400


class AuthError(ApiInsightError):
  """Missing or invalid bearer credential."""

  status_code = 401


class StorageError(ApiInsightError):
  """Backing store unavailable or a write failed."""

  status_code = 500


class SchedulingError(ApiInsightError):
  """A background pass failed for one unit of work.

  Never surfaced to HTTP callers; logged by the scheduler and retried on the
  next natural tick.
  """
