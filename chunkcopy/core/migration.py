"""
ChunkCopy Migration Runner

Plans a run and drives the coordinator and monitor to completion.
"""

import logging
from typing import Callable, Optional

from chunkcopy.core.config import mask_url
from chunkcopy.core.coordinator import DEFAULT_POLL_INTERVAL, ProcessPoolCoordinator
from chunkcopy.core.database import engine_from_config
from chunkcopy.core.metadata import MetadataProvider
from chunkcopy.core.monitor import ProgressMonitor
from chunkcopy.core.planner import build_migration_plan
from chunkcopy.core.types import JobStatus, MigrationConfig, MigrationPlan, ProcessInfo
from chunkcopy.core.worker import execute_chunk

logger = logging.getLogger(__name__)


def plan_migration(
    config: MigrationConfig,
    provider: Optional[MetadataProvider] = None,
    translate: Optional[Callable[[str], str]] = None
) -> MigrationPlan:
    engine = engine_from_config(config, pool_size=1)
    try:
        return build_migration_plan(engine, config, provider=provider, translate=translate)
    finally:
        engine.dispose()


def run_migration(
    config: MigrationConfig,
    provider: Optional[MetadataProvider] = None,
    translate: Optional[Callable[[str], str]] = None,
    reporter: Optional[Callable[[ProcessInfo], None]] = None,
    worker_target: Callable = execute_chunk,
    context=None,
    poll_interval: float = DEFAULT_POLL_INTERVAL
) -> ProcessInfo:
    """
    Migrate config.source_table into config.target_table.

    Errored chunks are not retried; they are reported in the returned
    ProcessInfo and need operator follow-up. Re-running is safe because
    inserts are suppressed on conflict with the external id column.

    Returns:
        Final ProcessInfo of the run
    """
    logger.info(
        "Migrating %s.%s -> %s.%s on %s",
        config.source_schema, config.source_table,
        config.target_schema, config.target_table,
        mask_url(config.database_url)
    )
    plan = plan_migration(config, provider=provider, translate=translate)

    monitor = ProgressMonitor(
        plan.queue,
        plan.process_info,
        interval=config.monitor_interval,
        reporter=reporter,
    )

    if len(plan.queue) == 0:
        logger.info("Source table is empty, nothing to dispatch")
        return monitor.finish()

    coordinator = ProcessPoolCoordinator(
        plan.queue,
        config,
        monitor=monitor,
        worker_target=worker_target,
        context=context,
        poll_interval=poll_interval,
    )
    coordinator.run()
    logger.debug("Final job counts: %s", plan.queue.counts())

    errored = plan.queue.jobs_with_status(JobStatus.ERROR)
    if errored:
        logger.warning(
            "%s chunk(s) failed and were not retried, offsets: %s",
            len(errored), ', '.join(str(job.offset) for job in errored)
        )
    return monitor.finish()
