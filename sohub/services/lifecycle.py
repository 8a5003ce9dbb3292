"""
Order lifecycle: intake validation, derived amounts, status hook and side effects.

Every mutation follows the same shape: validate, persist, append a
notification, publish an event, then queue email. Side-effect capabilities
are passed in through ``OrderEffects`` so routes, scripts and tests each
supply their own publisher and task runner.
"""
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Boolean, DateTime, Float, Integer, JSON
from sqlalchemy.orm import Query, Session

from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..models import choices
from ..models.models import Order, User
from ..schemas.orders import OrderCreate, ProductLineIn
from .broadcaster import EVENT_DELETE_ORDER, EVENT_NEW_ORDER, EVENT_UPDATE_ORDER
from .counter import mint_order_codes
from .mailer import deliver_best_effort, dispatch_update, order_confirmation
from .notifications import append_notification, describe
from .time_utils import parse_datetime, utcnow

log = structlog.get_logger(__name__)

_PHONE_RE = re.compile(r"^\d{10}$")
_PIN_RE = re.compile(r"^\d{6}$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

IMMUTABLE_FIELDS = frozenset({"id", "order_code", "order_number", "created_by", "created_at"})
EDITABLE_FIELDS = frozenset(c.name for c in Order.__table__.columns) - IMMUTABLE_FIELDS


# ---------- Side effects ----------

class NullPublisher:
    """Publisher for contexts without live clients (CLI scripts)."""

    def publish(self, event: str, payload: Any, user_id: Optional[str] = None) -> None:
        log.debug("event_not_published", event_name=event)


def _run_now(fn: Callable, *args, **kwargs) -> None:
    fn(*args, **kwargs)


@dataclass
class OrderEffects:
    publisher: Any = field(default_factory=NullPublisher)
    # Runs fire-and-forget work; routes pass BackgroundTasks.add_task
    defer: Callable[..., None] = _run_now


# ---------- Derived amounts ----------

@dataclass(frozen=True)
class Computed:
    value: float


@dataclass(frozen=True)
class Overridden:
    value: float


DerivedAmount = Union[Computed, Overridden]


def resolve_amount(override: Optional[float], compute: Callable[[], float]) -> DerivedAmount:
    """A caller-supplied amount always wins over the formula."""
    if override is not None:
        return Overridden(float(override))
    return Computed(float(compute()))


def gst_rate(gst: Any) -> float:
    if gst is None or str(gst).strip().lower() == choices.GST_INCLUDED:
        return 0.0
    try:
        return float(gst)
    except (TypeError, ValueError):
        return 0.0


def compute_total(
    products: Iterable[Dict[str, Any]],
    freight_charges: Optional[float] = None,
    installation_charges: Optional[float] = None,
) -> float:
    lines = sum(
        float(p.get("qty") or 0) * float(p.get("unit_price") or 0) * (1 + gst_rate(p.get("gst")) / 100)
        for p in products
    )
    return round(lines + float(freight_charges or 0) + float(installation_charges or 0), 2)


# ---------- Validation ----------

def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def product_errors(p: ProductLineIn) -> List[str]:
    errors = []
    if _blank(p.product_type) or p.qty is None or p.unit_price is None or _blank(p.gst) or _blank(p.warranty):
        errors.append("Each product must have product_type, qty, unit_price, gst, and warranty")
        return errors
    if p.qty <= 0:
        errors.append("qty must be positive")
    if p.unit_price < 0:
        errors.append("unit_price must be non-negative")
    if str(p.gst).strip().lower() not in choices.GST_CHOICES:
        errors.append(f"gst must be one of: {', '.join(choices.GST_CHOICES)}")
    return errors


def _check_dispatch_from(value: Optional[str]) -> None:
    if value and value not in choices.DISPATCH_ORIGINS:
        raise ValidationError("Invalid dispatchFrom value", [f"dispatch_from must be one of: {', '.join(choices.DISPATCH_ORIGINS)}"])


# Intake-only vocabularies; edits store whatever they are given
INTAKE_CHOICES = (
    ("order_type", "orderType", choices.ORDER_TYPES),
    ("payment_terms", "paymentTerms", choices.PAYMENT_TERMS),
    ("payment_method", "paymentMethod", choices.PAYMENT_METHODS),
    ("freight_status", "freightStatus", choices.FREIGHT_STATUSES),
    ("install_charges_status", "installChargesStatus", choices.INSTALL_CHARGES_STATUSES),
)


def choice_errors(values: Dict[str, Any]) -> List[str]:
    """Blank values are allowed here; create fills in the defaults."""
    errors = []
    for key, label, allowed in INTAKE_CHOICES:
        value = values.get(key)
        if not _blank(value) and value not in allowed:
            errors.append(f"Invalid {label} value")
    return errors


def validate_order_input(data: OrderCreate) -> None:
    """Raise ValidationError for the first rule the intake payload breaks."""
    if _blank(data.customer_name) or _blank(data.name) or _blank(data.contact_no) or _blank(data.customer_email):
        raise ValidationError("Missing required customer details")
    if not _PHONE_RE.match(data.contact_no.strip()):
        raise ValidationError("Contact number must be exactly 10 digits")
    if not _blank(data.alternate_no) and not _PHONE_RE.match(data.alternate_no.strip()):
        raise ValidationError("Alternate contact number must be exactly 10 digits")
    if not _EMAIL_RE.match(data.customer_email.strip()):
        raise ValidationError("Invalid email address")
    if _blank(data.state) or _blank(data.city) or _blank(data.pin_code):
        raise ValidationError("Missing required address details")
    if not _PIN_RE.match(data.pin_code.strip()):
        raise ValidationError("Pin Code must be exactly 6 digits")
    if _blank(data.shipping_address) or _blank(data.billing_address):
        raise ValidationError("Missing billing or shipping address")
    if data.order_type == choices.ORDER_TYPE_B2G and _blank(data.gem_order_number):
        raise ValidationError("Missing GEM Order Number for B2G orders")
    if data.order_type == choices.ORDER_TYPE_DEMO and data.demo_date is None:
        raise ValidationError("Missing Demo Date for Demo orders")
    if _blank(data.payment_terms) and data.order_type != choices.ORDER_TYPE_DEMO:
        raise ValidationError("Payment Terms is required for non-Demo orders")
    _check_dispatch_from(data.dispatch_from)
    errors = choice_errors(data.model_dump(include={key for key, _, _ in INTAKE_CHOICES}))
    if errors:
        raise ValidationError(errors[0], errors)
    if not data.products:
        raise ValidationError("Invalid product data", ["At least one product is required"])
    for i, p in enumerate(data.products, start=1):
        errors = product_errors(p)
        if errors:
            raise ValidationError("Invalid product data", [f"products[{i}]: {e}" for e in errors])


def normalize_product(p: ProductLineIn) -> Dict[str, Any]:
    gst = (p.gst or "").strip()
    if gst.lower() == choices.GST_INCLUDED:
        gst = choices.GST_INCLUDED
    return {
        "product_type": (p.product_type or "").strip(),
        "size": p.size or "N/A",
        "spec": p.spec or "N/A",
        "qty": p.qty,
        "unit_price": p.unit_price,
        "gst": gst,
        "model_nos": list(p.model_nos or []),
        "brand": p.brand or "",
        "warranty": p.warranty or "",
    }


# ---------- Status hook ----------

def apply_fulfillment_rule(order: Order) -> None:
    """A fulfilled order is complete; stamp when it was fulfilled."""
    if order.fulfilling_status == choices.FULFILLED:
        order.completion_status = choices.COMPLETE
        if order.fulfillment_date is None:
            order.fulfillment_date = utcnow()


def default_fulfilling_status(dispatch_from: Optional[str]) -> str:
    # Production builds Morinda orders; branches ship from stock
    if dispatch_from == choices.PRODUCTION_ORIGIN:
        return choices.FULFILLING_PENDING
    return choices.FULFILLED


# ---------- Events ----------

def event_payload(order: Order, notification: Optional[str] = None) -> Dict[str, Any]:
    payload = {
        "id": str(order.id),
        "order_code": order.order_code,
        "customer_name": order.customer_name,
    }
    if notification is not None:
        payload["notification"] = notification
    return payload


# ---------- Operations ----------

def create_order(db: Session, data: OrderCreate, actor: User, effects: Optional[OrderEffects] = None) -> Order:
    effects = effects or OrderEffects()
    validate_order_input(data)

    products = [normalize_product(p) for p in data.products]
    total = resolve_amount(
        data.total,
        lambda: compute_total(products, data.freight_charges, data.installation_charges),
    )
    payment_due = resolve_amount(
        data.payment_due,
        lambda: round(total.value - float(data.payment_collected or 0), 2),
    )

    [(number, code)] = mint_order_codes(db, 1)
    now = utcnow()
    order = Order(
        order_code=code,
        order_number=number,
        so_date=now,
        created_at=now,
        created_by=actor.id,
        customer_name=data.customer_name.strip(),
        name=data.name.strip(),
        gst_no=data.gst_no or "",
        city=data.city.strip(),
        state=data.state.strip(),
        pin_code=data.pin_code.strip(),
        contact_no=data.contact_no.strip(),
        alternate_no=(data.alternate_no or "").strip() or None,
        customer_email=data.customer_email.strip(),
        shipping_address=data.shipping_address,
        billing_address=data.billing_address,
        same_address=bool(data.same_address),
        products=products,
        total=total.value,
        payment_collected=data.payment_collected,
        payment_method=data.payment_method or "",
        payment_due=payment_due.value,
        neft_transaction_id=data.neft_transaction_id or "",
        cheque_id=data.cheque_id or "",
        payment_terms=data.payment_terms or "",
        credit_days=data.credit_days or "",
        freight_charges=data.freight_charges,
        freight_status=data.freight_status or "Extra",
        installation_charges=data.installation_charges,
        install_charges_status=data.install_charges_status or "Extra",
        order_type=data.order_type or "B2C",
        gem_order_number=data.gem_order_number or "",
        company=data.company or "",
        sales_person=data.sales_person or "",
        report=data.report or "",
        remarks=data.remarks or "",
        dispatch_from=data.dispatch_from or "",
        fulfilling_status=data.fulfilling_status or default_fulfilling_status(data.dispatch_from),
        delivery_date=data.delivery_date,
        demo_date=data.demo_date,
    )
    apply_fulfillment_rule(order)
    db.add(order)
    db.commit()
    log.info(
        "order_created",
        order_code=order.order_code,
        user_id=str(actor.id),
        total_source=type(total).__name__,
        payment_due_source=type(payment_due).__name__,
    )

    message = describe("New sales order created", actor, order)
    append_notification(db, message, user_id=actor.id)
    effects.publisher.publish(EVENT_NEW_ORDER, event_payload(order, message))

    if order.customer_email:
        subject, body = order_confirmation(order)
        effects.defer(deliver_best_effort, "order_confirmation", order.customer_email, subject, body)
    return order


def _coerce_edit_value(name: str, value: Any) -> Any:
    column = Order.__table__.columns[name]
    ctype = column.type

    if name == "products":
        if not isinstance(value, list):
            raise ValidationError("Invalid product data", ["products must be a list"])
        try:
            return [normalize_product(ProductLineIn.model_validate(p)) for p in value]
        except PydanticValidationError as e:
            raise ValidationError("Invalid product data", [err.get("msg", "Invalid value") for err in e.errors()])
    if isinstance(ctype, DateTime):
        if _blank(value):
            return None
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValidationError("Invalid date", [f"{name}: could not parse {value!r}"])
        return parsed
    if isinstance(ctype, (Float, Integer)):
        if _blank(value):
            if not column.nullable:
                raise ValidationError("Invalid number", [f"{name}: value is required"])
            return None
        if isinstance(value, bool):
            raise ValidationError("Invalid number", [f"{name}: expected a number"])
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError("Invalid number", [f"{name}: expected a number"])
    if isinstance(ctype, Boolean):
        if isinstance(value, str):
            return value.strip().lower() in ("yes", "true", "1")
        return bool(value)
    if isinstance(ctype, JSON):
        return value
    if value is None:
        return None if column.nullable else ""
    return value if isinstance(value, str) else str(value)


def edit_order(
    db: Session,
    order_id: uuid.UUID,
    changes: Dict[str, Any],
    actor: User,
    effects: Optional[OrderEffects] = None,
) -> Order:
    """
    Apply a partial update to an order.

    Keys outside EDITABLE_FIELDS are ignored. The update skips intake
    validation; only values the store cannot hold are rejected.
    """
    effects = effects or OrderEffects()
    order = db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")

    updates = {k: _coerce_edit_value(k, v) for k, v in changes.items() if k in EDITABLE_FIELDS}
    for key, value in updates.items():
        setattr(order, key, value)
    if "fulfilling_status" in updates:
        apply_fulfillment_rule(order)
    order.updated_at = utcnow()
    db.commit()
    log.info("order_updated", order_code=order.order_code, user_id=str(actor.id), fields=sorted(updates))

    new_dispatch = updates.get("dispatch_status")
    if new_dispatch in (choices.DISPATCHED, choices.DELIVERED) and order.customer_email:
        subject, body = dispatch_update(order, new_dispatch)
        effects.defer(deliver_best_effort, "dispatch_status", order.customer_email, subject, body)

    message = describe("Order updated", actor, order)
    append_notification(db, message, user_id=actor.id)
    effects.publisher.publish(EVENT_UPDATE_ORDER, event_payload(order, message))
    return order


def delete_order(db: Session, order_id: uuid.UUID, actor: User, effects: Optional[OrderEffects] = None) -> Order:
    effects = effects or OrderEffects()
    order = db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if actor.role == choices.ROLE_SALES and order.created_by != actor.id:
        raise AuthorizationError("You can only delete your own orders")

    payload = event_payload(order)
    message = describe("Order deleted", actor, order)
    db.delete(order)
    db.commit()
    log.info("order_deleted", order_code=order.order_code, user_id=str(actor.id))

    append_notification(db, message, user_id=actor.id)
    payload["notification"] = message
    effects.publisher.publish(EVENT_DELETE_ORDER, payload)
    return order


# ---------- Bulk import ----------

def _cell(row: Dict[str, Any], key: str, default: Any = "") -> Any:
    value = row.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    return value.strip() if isinstance(value, str) else value


def _text(row: Dict[str, Any], key: str, default: str = "") -> str:
    value = _cell(row, key, default)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _number(row: Dict[str, Any], key: str) -> Optional[float]:
    value = _cell(row, key, None)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


IMPORT_CHOICE_COLUMNS = (
    ("order_type", "Order Type"),
    ("payment_terms", "Payment Terms"),
    ("payment_method", "Payment Method"),
    ("freight_status", "Freight Status"),
    ("install_charges_status", "Installation Charges Status"),
)


def default_warranty(order_type: str, product_type: str, brand: str) -> str:
    if order_type == choices.ORDER_TYPE_B2G:
        return "As Per Tender"
    if product_type == "IFPD" and brand == "Promark":
        return "3 Years"
    return "1 Year"


def row_to_product(row: Dict[str, Any]) -> ProductLineIn:
    product_type = _text(row, "Product Type")
    brand = _text(row, "Brand")
    order_type = _text(row, "Order Type", "B2C")
    return ProductLineIn(
        product_type=product_type,
        size=_text(row, "Size", "N/A"),
        spec=_text(row, "Specification", "N/A"),
        qty=_number(row, "Quantity"),
        unit_price=_number(row, "Unit Price"),
        gst=_text(row, "GST", "18"),
        model_nos=_text(row, "Model Nos"),
        brand=brand,
        warranty=_text(row, "Warranty") or default_warranty(order_type, product_type, brand),
    )


def validate_import_row(index: int, row: Dict[str, Any]) -> ProductLineIn:
    product = row_to_product(row)
    errors = product_errors(product)
    if errors:
        raise ValidationError(f"Invalid product data in row {index}", errors)
    if product.product_type == "IFPD" and (not product.model_nos or not product.brand):
        raise ValidationError(f"Model Numbers and Brand are required for IFPD products in row {index}")
    dispatch_from = _text(row, "Dispatch From")
    if dispatch_from and dispatch_from not in choices.DISPATCH_ORIGINS:
        raise ValidationError(f"Invalid dispatchFrom value in row {index}")
    errors = choice_errors({key: _text(row, column) for key, column in IMPORT_CHOICE_COLUMNS})
    if errors:
        raise ValidationError(f"{errors[0]} in row {index}", errors)
    return product


def bulk_import(
    db: Session,
    rows: List[Dict[str, Any]],
    actor: User,
    effects: Optional[OrderEffects] = None,
) -> List[Order]:
    """
    Insert one order per spreadsheet row, all or nothing.

    Rows are numbered from 2 in error messages to match the sheet (row 1 is
    the header). Any invalid row rejects the batch before a code is minted.
    """
    effects = effects or OrderEffects()
    if not rows:
        raise ValidationError("No rows found in the uploaded file")

    products = [validate_import_row(i, row) for i, row in enumerate(rows, start=2)]

    codes = mint_order_codes(db, len(rows))
    now = utcnow()
    orders = []
    for row, product, (number, code) in zip(rows, products, codes):
        line = normalize_product(product)
        freight = _number(row, "Freight Charges")
        installation = _number(row, "Installation Charges")
        collected = _number(row, "Payment Collected")
        total = compute_total([line], freight, installation)
        dispatch_from = _text(row, "Dispatch From")
        orders.append(
            Order(
                order_code=code,
                order_number=number,
                so_date=parse_datetime(_cell(row, "SO Date", None)) or now,
                created_at=now,
                created_by=actor.id,
                dispatch_from=dispatch_from,
                name=_text(row, "Contact Person Name"),
                city=_text(row, "City"),
                state=_text(row, "State"),
                pin_code=_text(row, "Pin Code"),
                contact_no=_text(row, "Contact No"),
                alternate_no=_text(row, "Alternate No") or None,
                customer_email=_text(row, "Customer Email"),
                customer_name=_text(row, "Customer Name"),
                gst_no=_text(row, "GST No"),
                products=[line],
                total=total,
                payment_collected=collected,
                payment_due=round(total - float(collected or 0), 2),
                payment_method=_text(row, "Payment Method"),
                neft_transaction_id=_text(row, "NEFT Transaction ID"),
                cheque_id=_text(row, "Cheque ID"),
                payment_terms=_text(row, "Payment Terms"),
                freight_charges=freight,
                freight_status=_text(row, "Freight Status", "Extra"),
                installation_charges=installation,
                install_charges_status=_text(row, "Installation Charges Status", "Extra"),
                report=_text(row, "Reporting Manager"),
                sales_person=_text(row, "Sales Person"),
                company=_text(row, "Company", "Promark"),
                order_type=_text(row, "Order Type", "B2C"),
                shipping_address=_text(row, "Shipping Address"),
                billing_address=_text(row, "Billing Address"),
                same_address=_text(row, "Same Address") == "Yes",
                remarks=_text(row, "Remarks"),
                gem_order_number=_text(row, "GEM Order Number"),
                delivery_date=parse_datetime(_cell(row, "Delivery Date", None)),
                fulfilling_status=default_fulfilling_status(dispatch_from),
            )
        )
    for order in orders:
        apply_fulfillment_rule(order)
    db.add_all(orders)
    db.commit()
    log.info("orders_imported", count=len(orders), user_id=str(actor.id))

    for order in orders:
        effects.publisher.publish(EVENT_NEW_ORDER, event_payload(order))
    return orders


# ---------- Reads ----------

def visible_orders_query(db: Session, actor: User) -> Query:
    """Sales users see the orders they created; every other role sees all."""
    q = db.query(Order)
    if actor.role == choices.ROLE_SALES:
        q = q.filter(Order.created_by == actor.id)
    return q
