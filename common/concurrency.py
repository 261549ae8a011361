import logging
import time

from django.conf import settings
from django.db import OperationalError, transaction

from common.exceptions import ConcurrencyConflict

logger = logging.getLogger(__name__)


def lock_for_update(queryset):
    """Row-level lock for aggregate recomputation.

    Rows are locked in primary key order so two callers touching overlapping
    sets of rows always acquire them in the same sequence.
    SQLite ignores SELECT ... FOR UPDATE; the surrounding transaction still
    serialises writers there.
    """
    return queryset.select_for_update().order_by("pk")


def run_atomic(func, *, attempts=None, backoff_base=0.05):
    """Run ``func`` in its own transaction, retrying on lock contention.

    Deadlocks and lock timeouts surface from the database as
    ``OperationalError``; the whole unit is rolled back and re-run. Once the
    attempts are exhausted the caller receives ``ConcurrencyConflict``.
    Business exceptions raised by ``func`` propagate untouched after rollback.
    """
    if attempts is None:
        attempts = getattr(settings, "CONCURRENCY_RETRY_ATTEMPTS", 3)

    if transaction.get_connection().in_atomic_block:
        # Nested: the outer transaction owns rollback, no retry.
        with transaction.atomic():
            return func()

    for attempt in range(attempts):
        try:
            with transaction.atomic():
                return func()
        except OperationalError as exc:
            logger.warning("atomic_retry attempt=%s error=%s", attempt + 1, exc)
            if attempt >= attempts - 1:
                raise ConcurrencyConflict() from exc
            time.sleep(backoff_base * (2**attempt))
    raise ConcurrencyConflict()
