from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session


logger = logging.getLogger(__name__)


class CouponEngineError(RuntimeError):
    """Base error for coupon activation failures.

    Every failure is scoped to the single activation or toggle attempt that
    raised it. ``status_code`` and ``code`` are what the HTTP layer reports.
    """

    status_code = 500
    code = "coupon_engine_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CouponEngineError):
    status_code = 400
    code = "validation_error"


class ActivationNotFound(ValidationError):
    status_code = 404
    code = "activation_not_found"


class EligibilityError(CouponEngineError):
    status_code = 403
    code = "eligibility_error"

    def __init__(self, unmet_requirements: list[str]) -> None:
        self.unmet_requirements = list(unmet_requirements)
        super().__init__("; ".join(self.unmet_requirements) or "not eligible")


class ConflictError(CouponEngineError):
    # Raised on a lost insert race; callers recover it as a no-op success.
    status_code = 409
    code = "conflict"


class StorageUnavailable(CouponEngineError):
    status_code = 503
    code = "storage_unavailable"


@contextmanager
def storage_errors(db: Session, event: str) -> Iterator[None]:
    """Turn infrastructure failures from ``db`` into ``StorageUnavailable``."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s.storage_error", event)
        raise StorageUnavailable("The coupon store is temporarily unavailable, try again") from exc
