"""
Kitchen Order Routes for Barista Bot
====================================

Endpoints for the kitchen display.

Endpoints:
----------
- GET /orders: Closed orders, newest first
- PATCH /orders/{order_id}: Move an order to in_progress or completed
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..engine.errors import PersistenceFailure
from ..schemas.orders import OrderOut, StatusUpdate
from ..services.order import InvalidStatus, list_kitchen_orders, update_order_status


logger = logging.getLogger(__name__)

orders_router = APIRouter(prefix="/orders", tags=["Orders"])


@orders_router.get("", response_model=List[OrderOut])
def list_orders(
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> List[OrderOut]:
    """List orders waiting for, or handled by, the kitchen."""
    try:
        orders = list_kitchen_orders(db, limit=limit)
    except PersistenceFailure:
        raise HTTPException(status_code=503, detail="Orders are unavailable, please retry")
    return [OrderOut.from_order(order) for order in orders]


@orders_router.patch("/{order_id}", response_model=OrderOut)
def update_status(
    order_id: str,
    body: StatusUpdate,
    db: Session = Depends(get_db),
) -> OrderOut:
    """Set a kitchen order's status."""
    try:
        order = update_order_status(db, order_id, body.status)
    except InvalidStatus as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceFailure:
        raise HTTPException(status_code=503, detail="Could not update the order, please retry")
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return OrderOut.from_order(order)
