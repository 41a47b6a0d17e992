"""
Owner Routes for Barista Bot
============================

Read-only numbers for the store owner.

Endpoints:
----------
- GET /owner/stats: Today's order count, revenue, average order value,
  best-selling items and orders per status
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..engine.errors import PersistenceFailure
from ..schemas.orders import OwnerStats
from ..services.order import owner_stats


logger = logging.getLogger(__name__)

owner_router = APIRouter(prefix="/owner", tags=["Owner"])


@owner_router.get("/stats", response_model=OwnerStats)
def get_stats(db: Session = Depends(get_db)) -> OwnerStats:
    """Today's pulse metrics."""
    try:
        stats = owner_stats(db)
    except PersistenceFailure:
        raise HTTPException(status_code=503, detail="Stats are unavailable, please retry")
    return OwnerStats.model_validate(stats)
