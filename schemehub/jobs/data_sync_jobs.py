"""
Scheduled master data sync.

Runs outside any request, so it opens its own database session and
never raises: failures are logged and the next run starts on schedule.
"""

import logging
from typing import List, Optional

from schemehub.core.exceptions import ConflictError, ExternalSourceError
from schemehub.database import async_session_factory
from schemehub.services.data_sync_service import ReconciliationResult, sync_supervisor
from schemehub.services.external_source import ExternalSource

logger = logging.getLogger(__name__)


async def run_scheduled_sync(
    session_factory=None,
    source: Optional[ExternalSource] = None,
) -> List[ReconciliationResult]:
    """Reconcile products then distributors; skipped while another sync runs."""
    if sync_supervisor.running:
        logger.warning("Scheduled sync skipped: a sync is already in progress")
        return []

    session_factory = session_factory or async_session_factory
    try:
        async with session_factory() as db:
            results = await sync_supervisor.run("all", db, source)
    except ConflictError:
        logger.warning("Scheduled sync skipped: a sync is already in progress")
        return []
    except ExternalSourceError as e:
        logger.error(f"Scheduled sync aborted: {e.message}")
        return []
    except Exception as e:
        logger.exception(f"Scheduled sync failed: {e}")
        return []

    for result in results:
        logger.info(
            f"Scheduled sync [{result.entity}]: created={result.created} "
            f"updated={result.updated} skipped={result.skipped} errors={result.errors}"
        )
    return results
