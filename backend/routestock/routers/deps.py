"""Shared router plumbing: session dependency and domain-error mapping."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException
from sqlmodel import Session

from routestock.core.database import get_session
from routestock.services.errors import (
    InsufficientStockError,
    StockConflictError,
    StockError,
    StockNotFoundError,
    StockValidationError,
)

logger = logging.getLogger(__name__)

SesDep = Annotated[Session, Depends(get_session)]


def http_error(exc: Exception, action: str) -> HTTPException:
    """Map a service error to the HTTPException the API returns.

    Called from inside the router's ``except`` block so unexpected failures
    are logged with their traceback.
    """
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, StockValidationError):
        logger.info("%s rejected: %s", action, exc)
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, StockNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InsufficientStockError):
        logger.warning("%s rejected: %s", action, exc)
        return HTTPException(status_code=409, detail={"message": str(exc), **exc.to_dict()})
    if isinstance(exc, StockConflictError):
        logger.warning("%s rejected: %s", action, exc)
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, StockError):
        return HTTPException(status_code=400, detail=str(exc))
    logger.exception("%s failed", action)
    return HTTPException(status_code=500, detail=str(exc))
