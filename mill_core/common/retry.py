# mill_core/common/retry.py
from __future__ import annotations

import logging
import time
from functools import wraps

from django.conf import settings
from django.db import InterfaceError, OperationalError

from mill_core.common.exceptions import DegradedData

logger = logging.getLogger(__name__)

TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError)


def with_read_retry(fn):
    """
    Retry a read-only store call once after a short backoff.

    Only transient driver errors are retried. Permission and scope failures
    are APIExceptions and pass straight through. A second failure becomes
    DegradedData so one dashboard widget can fail without taking the page down.
    """
    @wraps(fn)
    def _wrapped(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except TRANSIENT_DB_ERRORS as exc:
            backoff = getattr(settings, "MILL_READ_RETRY_BACKOFF_SECONDS", 0.05)
            logger.warning("read %s failed (%s); retrying in %.2fs", fn.__name__, exc, backoff)
            if backoff:
                time.sleep(backoff)

        try:
            return fn(*args, **kwargs)
        except TRANSIENT_DB_ERRORS as exc:
            logger.error("read %s failed after retry: %s", fn.__name__, exc)
            raise DegradedData() from exc

    return _wrapped
