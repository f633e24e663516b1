from __future__ import annotations

from typing import Sequence


class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class InsufficientStockError(AppError):
    pass


class PersistenceError(AppError):
    """A repository call failed. Never retried by the core."""


class ConcurrentUpdateError(PersistenceError):
    pass


class PartialCompletionError(AppError):
    """Settlement stopped after at least one write was committed.

    Nothing is rolled back: ``completed_steps`` tells the caller what is
    already persisted so it can reconcile.
    """

    def __init__(self, message: str, sale_number: str, completed_steps: Sequence[str], failed_step: str):
        super().__init__(message)
        self.sale_number = sale_number
        self.completed_steps = tuple(completed_steps)
        self.failed_step = failed_step
