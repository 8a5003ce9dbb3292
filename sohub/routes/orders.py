import uuid
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, File, Request, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session, joinedload

from ..auth.security import get_current_user
from ..db import get_db
from ..errors import ValidationError
from ..models.models import Order, User
from ..schemas.orders import OrderCreate, order_to_dict
from ..services import lifecycle, projections
from ..services.spreadsheet import XLSX_MEDIA_TYPE, build_orders_workbook, read_rows

router = APIRouter(prefix="/orders", tags=["orders"])


def get_effects(request: Request, background_tasks: BackgroundTasks) -> lifecycle.OrderEffects:
    return lifecycle.OrderEffects(publisher=request.app.state.broadcaster, defer=background_tasks.add_task)


@router.get("")
def list_orders(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    orders = (
        lifecycle.visible_orders_query(db, user)
        .options(joinedload(Order.creator))
        .order_by(Order.so_date.desc())
        .all()
    )
    return [order_to_dict(o, o.creator) for o in orders]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    effects: lifecycle.OrderEffects = Depends(get_effects),
):
    order = lifecycle.create_order(db, payload, user, effects)
    return {"success": True, "message": "Order created successfully", "data": order_to_dict(order)}


@router.get("/export")
def export_orders(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    orders = lifecycle.visible_orders_query(db, user).order_by(Order.order_number.asc()).all()
    content = build_orders_workbook(orders)
    filename = f"orders_{date.today().isoformat()}.xlsx"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
def bulk_upload(
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    effects: lifecycle.OrderEffects = Depends(get_effects),
):
    if file is None:
        raise ValidationError("No file uploaded")
    rows = read_rows(file.file.read())
    orders = lifecycle.bulk_import(db, rows, user, effects)
    return {
        "success": True,
        "message": "Orders uploaded successfully",
        "count": len(orders),
        "data": [order_to_dict(o) for o in orders],
    }


@router.get("/{view}")
def order_view(view: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Department queue, e.g. ``/orders/production`` or ``/orders/finished-goods``."""
    return [order_to_dict(o, o.creator) for o in projections.run_view(db, view)]


@router.put("/{order_id}")
def edit_order(
    order_id: uuid.UUID,
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    effects: lifecycle.OrderEffects = Depends(get_effects),
):
    order = lifecycle.edit_order(db, order_id, payload, user, effects)
    return {"success": True, "message": "Order updated successfully", "data": order_to_dict(order)}


@router.delete("/{order_id}")
def delete_order(
    order_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    effects: lifecycle.OrderEffects = Depends(get_effects),
):
    lifecycle.delete_order(db, order_id, user, effects)
    return {"success": True, "message": "Order deleted successfully"}
