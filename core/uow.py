"""
Unit of work: the explicit transaction boundary handed to every ledger,
lifecycle and payment service call.
"""
import logging
from contextlib import contextmanager
from functools import partial

from django.db import DEFAULT_DB_ALIAS, transaction

logger = logging.getLogger(__name__)


def run_best_effort(func, label, *args, **kwargs):
    """Run a side effect; log and drop any exception it raises."""
    try:
        func(*args, **kwargs)
    except Exception:
        logger.exception(f"[uow] Best-effort side effect failed: {label}")


class UnitOfWork:
    """
    Wraps django.db.transaction for one database alias.

    Services open ``uow.atomic()`` around each mutating operation. Nested use
    becomes a savepoint, so an operation is atomic on its own and also joins the
    request-level transaction a view may have opened around several operations.
    """

    def __init__(self, using=DEFAULT_DB_ALIAS):
        self.using = using

    @classmethod
    def begin(cls, using=DEFAULT_DB_ALIAS):
        return cls(using=using)

    @contextmanager
    def atomic(self):
        with transaction.atomic(using=self.using):
            yield self

    def on_commit(self, func, label, *args, **kwargs):
        """
        Schedule ``func`` to run after the outermost transaction commits.
        Failures are logged, never propagated. Runs immediately when no
        transaction is open (Django's on_commit semantics).
        """
        transaction.on_commit(partial(run_best_effort, func, label, *args, **kwargs), using=self.using)

    def __repr__(self):
        return f'UnitOfWork(using={self.using!r})'
