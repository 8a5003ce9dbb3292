from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ..services.time_utils import iso_or_none, parse_datetime


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip().upper() in ("", "N/A"):
        return None
    return value


class ProductLineIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    product_type: Optional[str] = None
    size: Optional[str] = None
    spec: Optional[str] = None
    qty: Optional[float] = None
    unit_price: Optional[float] = None
    gst: Optional[str] = None
    model_nos: Optional[List[str]] = None
    brand: Optional[str] = None
    warranty: Optional[str] = None

    @field_validator("gst", mode="before")
    @classmethod
    def _gst_as_text(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v)) if float(v).is_integer() else str(v)
        return v

    @field_validator("qty", "unit_price", mode="before")
    @classmethod
    def _numbers(cls, v):
        return _blank_to_none(v)

    @field_validator("model_nos", mode="before")
    @classmethod
    def _model_nos(cls, v):
        if isinstance(v, str):
            return [m.strip() for m in v.split(",") if m.strip()]
        return v


class OrderCreate(BaseModel):
    """Order intake payload. Business rules are enforced by the lifecycle service."""
    model_config = ConfigDict(extra="ignore")

    customer_name: Optional[str] = None
    name: Optional[str] = None
    gst_no: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pin_code: Optional[str] = None
    contact_no: Optional[str] = None
    alternate_no: Optional[str] = None
    customer_email: Optional[str] = None
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None
    same_address: bool = False

    products: List[ProductLineIn] = []

    total: Optional[float] = None
    payment_collected: Optional[float] = None
    payment_method: Optional[str] = None
    payment_due: Optional[float] = None
    neft_transaction_id: Optional[str] = None
    cheque_id: Optional[str] = None
    payment_terms: Optional[str] = None
    credit_days: Optional[str] = None
    freight_charges: Optional[float] = None
    freight_status: Optional[str] = None
    installation_charges: Optional[float] = None
    install_charges_status: Optional[str] = None

    order_type: Optional[str] = None
    gem_order_number: Optional[str] = None
    company: Optional[str] = None
    sales_person: Optional[str] = None
    report: Optional[str] = None
    remarks: Optional[str] = None
    dispatch_from: Optional[str] = None
    fulfilling_status: Optional[str] = None

    delivery_date: Optional[datetime] = None
    demo_date: Optional[datetime] = None

    @field_validator("pin_code", "contact_no", "alternate_no", "credit_days", mode="before")
    @classmethod
    def _digits_as_text(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator(
        "total", "payment_collected", "payment_due", "freight_charges", "installation_charges", mode="before"
    )
    @classmethod
    def _amounts(cls, v):
        return _blank_to_none(v)

    @field_validator("delivery_date", "demo_date", mode="before")
    @classmethod
    def _dates(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        parsed = parse_datetime(v)
        if parsed is None:
            raise ValueError("Invalid date")
        return parsed


def product_to_dict(p: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "product_type": p.get("product_type", ""),
        "size": p.get("size") or "N/A",
        "spec": p.get("spec") or "N/A",
        "qty": p.get("qty", 0),
        "unit_price": p.get("unit_price", 0),
        "gst": p.get("gst", ""),
        "model_nos": list(p.get("model_nos") or []),
        "brand": p.get("brand") or "",
        "warranty": p.get("warranty") or "",
    }


def order_to_dict(order, creator=None) -> Dict[str, Any]:
    data = {
        "id": str(order.id),
        "order_code": order.order_code,
        "so_date": iso_or_none(order.so_date),
        "created_at": iso_or_none(order.created_at),
        "updated_at": iso_or_none(order.updated_at),
        "created_by": str(order.created_by) if order.created_by else None,
        "customer_name": order.customer_name,
        "name": order.name,
        "gst_no": order.gst_no,
        "city": order.city,
        "state": order.state,
        "pin_code": order.pin_code,
        "contact_no": order.contact_no,
        "alternate_no": order.alternate_no,
        "customer_email": order.customer_email,
        "shipping_address": order.shipping_address,
        "billing_address": order.billing_address,
        "same_address": order.same_address,
        "products": [product_to_dict(p) for p in (order.products or [])],
        "total": order.total,
        "payment_collected": order.payment_collected,
        "payment_method": order.payment_method,
        "payment_due": order.payment_due,
        "neft_transaction_id": order.neft_transaction_id,
        "cheque_id": order.cheque_id,
        "payment_terms": order.payment_terms,
        "credit_days": order.credit_days,
        "freight_charges": order.freight_charges,
        "freight_status": order.freight_status,
        "actual_freight": order.actual_freight,
        "installation_charges": order.installation_charges,
        "install_charges_status": order.install_charges_status,
        "order_type": order.order_type,
        "gem_order_number": order.gem_order_number,
        "company": order.company,
        "sales_person": order.sales_person,
        "report": order.report,
        "dispatch_from": order.dispatch_from,
        "dispatch_date": iso_or_none(order.dispatch_date),
        "delivery_date": iso_or_none(order.delivery_date),
        "receipt_date": iso_or_none(order.receipt_date),
        "invoice_date": iso_or_none(order.invoice_date),
        "demo_date": iso_or_none(order.demo_date),
        "fulfillment_date": iso_or_none(order.fulfillment_date),
        "transporter": order.transporter,
        "transporter_details": order.transporter_details,
        "docket_no": order.docket_no,
        "invoice_no": order.invoice_no,
        "bill_number": order.bill_number,
        "pi_number": order.pi_number,
        "remarks": order.remarks,
        "remarks_by_production": order.remarks_by_production,
        "remarks_by_accounts": order.remarks_by_accounts,
        "remarks_by_billing": order.remarks_by_billing,
        "remarks_by_dispatch": order.remarks_by_dispatch,
        "remarks_by_installation": order.remarks_by_installation,
        "verification_remarks": order.verification_remarks,
        "fulfilling_status": order.fulfilling_status,
        "dispatch_status": order.dispatch_status,
        "installation_status": order.installation_status,
        "installation_report": order.installation_report,
        "bill_status": order.bill_status,
        "payment_received": order.payment_received,
        "completion_status": order.completion_status,
        "sostatus": order.sostatus,
        "stock_status": order.stock_status,
        "stamp": order.stamp,
    }
    if creator is not None:
        data["creator"] = {"id": str(creator.id), "username": creator.username, "email": creator.email}
    return data
