"""
Department queues over the order table.

Each view is a predicate on current order state, evaluated on every read.
Inequality and exclusion tests also match NULL: an order that never had
the field set is not equal to the excluded value.
"""
from typing import Callable, Dict, List

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.sql.elements import ColumnElement

from ..errors import NotFoundError
from ..models import choices
from ..models.models import Order


def ne(column, value) -> ColumnElement:
    return or_(column.is_(None), column != value)


def not_in(column, values) -> ColumnElement:
    return or_(column.is_(None), column.notin_(values))


def finished_goods() -> ColumnElement:
    return and_(Order.fulfilling_status == choices.FULFILLED, ne(Order.stamp, choices.RECEIVED))


def verification() -> ColumnElement:
    return and_(
        Order.payment_terms.in_(choices.ADVANCE_PAYMENT_TERMS),
        not_in(Order.sostatus, (choices.SO_ACCOUNTS_APPROVED, choices.SO_APPROVED)),
    )


def bill() -> ColumnElement:
    return and_(Order.sostatus == choices.SO_APPROVED, ne(Order.bill_status, choices.BILLING_COMPLETE))


def installation() -> ColumnElement:
    return and_(
        Order.dispatch_status == choices.DELIVERED,
        ne(Order.installation_report, "Yes"),
        Order.installation_status.in_(choices.INSTALLATION_OPEN_STATUSES),
    )


def accounts() -> ColumnElement:
    return and_(
        Order.installation_status == choices.INSTALLATION_COMPLETED,
        ne(Order.payment_received, choices.RECEIVED),
    )


def production_approval() -> ColumnElement:
    return or_(
        Order.sostatus == choices.SO_ACCOUNTS_APPROVED,
        and_(Order.sostatus == choices.SO_PENDING, Order.payment_terms == choices.PAYMENT_TERMS_CREDIT),
    )


def production() -> ColumnElement:
    return and_(
        Order.sostatus == choices.SO_APPROVED,
        not_in(Order.dispatch_from, choices.EXTERNAL_FULFILLMENT_ORIGINS),
        ne(Order.fulfilling_status, choices.FULFILLED),
    )


# URL slug -> predicate factory
VIEWS: Dict[str, Callable[[], ColumnElement]] = {
    "finished-goods": finished_goods,
    "verification": verification,
    "bill": bill,
    "installation": installation,
    "accounts": accounts,
    "production-approval": production_approval,
    "production": production,
}


def run_view(db: Session, name: str) -> List[Order]:
    predicate = VIEWS.get(name)
    if predicate is None:
        raise NotFoundError(f"Unknown view: {name}")
    return (
        db.query(Order)
        .options(joinedload(Order.creator))
        .filter(predicate())
        .order_by(Order.so_date.desc())
        .all()
    )
