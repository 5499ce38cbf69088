"""Operator job: re-run hourly aggregation and the retention sweep on demand.

The service runs both passes on its own schedule; this script is for
backfills (re-aggregating hours after late events were loaded) and for
running a sweep outside the daily cycle.

Exit codes:
    0: success
    1: configuration or database connection failure
    2: aggregation or sweep failure
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from apiinsight.lib.config import load_settings
from apiinsight.services.aggregation_service import AggregationService
from apiinsight.services.retention_service import RetentionService

logging.basicConfig(
  level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
  parser = argparse.ArgumentParser(description='Re-run API Insight aggregation and retention')
  parser.add_argument(
    '--hours',
    type=int,
    default=24,
    help='Number of completed hours to re-aggregate (default: 24, 0 to skip)',
  )
  parser.add_argument('--sweep', action='store_true', help='Also run the retention sweep')
  return parser.parse_args(argv)


def run_jobs(session_factory, hours: int, sweep: bool, now: Optional[datetime] = None) -> dict:
  """Run the requested passes and return a summary.

  Raises:
      Exception: If any hour fails to aggregate or the sweep fails
  """
  now = now or datetime.now(timezone.utc)
  summary = {'hours': 0, 'buckets': 0, 'failed_groups': 0, 'deleted': 0}

  if hours > 0:
    results = AggregationService(session_factory).catch_up(now=now, hours=hours)
    summary['hours'] = len(results)
    summary['buckets'] = sum(r.upserted_groups for r in results)
    summary['failed_groups'] = sum(len(r.failed_groups) for r in results)
    if len(results) < hours:
      raise RuntimeError(f'{hours - len(results)} hour(s) failed to aggregate')

  if sweep:
    summary['deleted'] = RetentionService(session_factory).sweep(now=now)

  return summary


def main(argv: Optional[List[str]] = None):
  """Main entry point (console script ``apiinsight-aggregate``)."""
  args = parse_args(argv)
  logger.info('Starting API Insight maintenance job')

  try:
    settings = load_settings()
    engine = create_engine(settings.database_url)
    with engine.connect() as conn:
      conn.execute(text('SELECT 1'))
    Session = sessionmaker(bind=engine)
  except Exception as e:
    logger.error(
      f'Fatal error connecting to database: {e}. '
      f'Check APP_DATABASE_URL, network connectivity and credentials.',
      exc_info=True,
    )
    sys.exit(1)

  try:
    summary = run_jobs(Session, args.hours, args.sweep)
  except Exception as e:
    logger.error(f'Maintenance job failed: {e}', exc_info=True)
    sys.exit(2)
  finally:
    engine.dispose()

  logger.info(
    f'Maintenance job completed successfully: '
    f'{summary["hours"]} hours, {summary["buckets"]} buckets, '
    f'{summary["failed_groups"]} failed groups, {summary["deleted"]} expired events deleted'
  )
  if summary['failed_groups']:
    sys.exit(2)
  sys.exit(0)


if __name__ == '__main__':
  main()
