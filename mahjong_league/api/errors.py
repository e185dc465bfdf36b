from __future__ import annotations

import math
from typing import Any

from fastapi import HTTPException, status

from mahjong_league.domain import (
    DomainValidationError,
    EntityConflictError,
    EntityNotFoundError,
    PointBalanceError,
    ScoreBalanceError,
)


def api_error(
    *,
    code: str,
    message: str,
    details: Any | None = None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={
            "code": code,
            "message": message,
            "details": details,
        },
    )


def domain_error(exc: DomainValidationError | PointBalanceError) -> HTTPException:
    if isinstance(exc, EntityNotFoundError):
        return api_error(
            code=f"{exc.kind}_not_found",
            message=str(exc),
            details={"id": exc.entity_id},
            status_code=status.HTTP_404_NOT_FOUND,
        )
    if isinstance(exc, EntityConflictError):
        return api_error(
            code=exc.code,
            message=str(exc),
            details=exc.details,
            status_code=status.HTTP_409_CONFLICT,
        )
    if isinstance(exc, ScoreBalanceError):
        return api_error(
            code="score_balance_mismatch",
            message=str(exc),
            details={"expected": exc.expected, "actual": exc.actual},
        )
    if isinstance(exc, PointBalanceError):
        return api_error(
            code="point_balance_error",
            message=str(exc),
            details={"total": round(exc.total, 2) if math.isfinite(exc.total) else None},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return api_error(code="validation_error", message=str(exc))
