import uuid

import pytest

from sohub.errors import AuthorizationError, NotFoundError, ValidationError
from sohub.models.models import Notification, Order
from sohub.schemas.orders import OrderCreate
from sohub.services import lifecycle
from sohub.services.lifecycle import Computed, Overridden, compute_total, resolve_amount
from sohub.services.mailer import deliver_best_effort

from conftest import order_payload


def test_total_mixes_percentage_and_included_gst(new_order):
    order = new_order(
        products=[
            {"product_type": "IFPD", "qty": 2, "unit_price": 100, "gst": "18", "warranty": "1 Year"},
            {"product_type": "Stand", "qty": 1, "unit_price": 50, "gst": "including", "warranty": "1 Year"},
        ],
        freight_charges=0,
        installation_charges=0,
    )
    assert order.total == pytest.approx(286.0)
    assert order.payment_due == pytest.approx(286.0)


@pytest.mark.parametrize(
    "products,freight,install,collected",
    [
        ([{"qty": 1, "unit_price": 1000, "gst": "28"}], 150, None, 500),
        ([{"qty": 3, "unit_price": 99.5, "gst": "including"}], None, 200, 0),
        ([{"qty": 1, "unit_price": 10, "gst": "18"}, {"qty": 4, "unit_price": 25, "gst": "including"}], 0, 0, 117.8),
    ],
)
def test_payment_due_is_total_minus_collected(new_order, products, freight, install, collected):
    lines = [dict(p, product_type="Board", warranty="1 Year") for p in products]
    order = new_order(products=lines, freight_charges=freight, installation_charges=install, payment_collected=collected)
    assert order.total == pytest.approx(compute_total(lines, freight, install))
    assert order.payment_due == pytest.approx(order.total - collected)


def test_explicit_amounts_override_formula(new_order):
    order = new_order(total=5000, payment_due=1234)
    assert order.total == 5000
    assert order.payment_due == 1234


def test_resolve_amount_tags_source():
    assert resolve_amount(None, lambda: 10) == Computed(10.0)
    assert resolve_amount(0, lambda: 10) == Overridden(0.0)


def test_create_side_effects(new_order, effects, publisher, db):
    order = new_order()
    assert order.order_code.startswith("PMTO")
    assert publisher.names() == ["newOrder"]
    event, payload, user_id = publisher.events[0]
    assert payload["id"] == str(order.id)
    assert payload["order_code"] == order.order_code
    assert user_id is None
    note = db.query(Notification).one()
    assert note.message.startswith("New sales order created by ")
    assert f"(Order ID: {order.order_code})" in note.message
    # confirmation mail queued, not sent inline
    fn, args, _ = effects.defer.calls[0]
    assert fn is deliver_best_effort
    assert args[1] == "ravi@example.com"
    assert order.order_code in args[2]


def test_create_defaults(new_order):
    order = new_order()
    assert order.order_type == "B2C"
    assert order.dispatch_status == "Not Dispatched"
    assert order.sostatus == "Pending for Approval"
    assert order.products[0]["size"] == "N/A"
    assert order.products[0]["spec"] == "N/A"
    assert order.products[0]["model_nos"] == []


def test_branch_orders_start_fulfilled_and_complete(new_order):
    order = new_order(dispatch_from="Patna")
    assert order.fulfilling_status == "Fulfilled"
    assert order.completion_status == "Complete"
    assert order.fulfillment_date is not None


def test_production_orders_start_pending(new_order):
    order = new_order(dispatch_from="Morinda")
    assert order.fulfilling_status == "Pending"
    assert order.completion_status == "In Progress"
    assert order.fulfillment_date is None


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"customer_name": ""}, "Missing required customer details"),
        ({"contact_no": "12345"}, "Contact number must be exactly 10 digits"),
        ({"alternate_no": "98765"}, "Alternate contact number must be exactly 10 digits"),
        ({"customer_email": "not-an-email"}, "Invalid email address"),
        ({"city": ""}, "Missing required address details"),
        ({"pin_code": "8000"}, "Pin Code must be exactly 6 digits"),
        ({"billing_address": ""}, "Missing billing or shipping address"),
        ({"order_type": "B2G"}, "Missing GEM Order Number for B2G orders"),
        ({"order_type": "Demo", "payment_terms": ""}, "Missing Demo Date for Demo orders"),
        ({"payment_terms": ""}, "Payment Terms is required for non-Demo orders"),
        ({"dispatch_from": "Mumbai"}, "Invalid dispatchFrom value"),
        ({"order_type": "Wholesale"}, "Invalid orderType value"),
        ({"payment_terms": "Whenever"}, "Invalid paymentTerms value"),
        ({"payment_method": "Barter"}, "Invalid paymentMethod value"),
        ({"freight_status": "Free"}, "Invalid freightStatus value"),
        ({"install_charges_status": "Free"}, "Invalid installChargesStatus value"),
        ({"products": [{"product_type": "IFPD", "qty": 0, "unit_price": 10, "gst": "18", "warranty": "1 Year"}]}, "Invalid product data"),
        ({"products": [{"product_type": "IFPD", "qty": 1, "unit_price": -1, "gst": "18", "warranty": "1 Year"}]}, "Invalid product data"),
        ({"products": [{"product_type": "IFPD", "qty": 1, "unit_price": 10, "gst": "abc", "warranty": "1 Year"}]}, "Invalid product data"),
        ({"products": [{"product_type": "IFPD", "qty": 1, "unit_price": 10, "gst": "5", "warranty": "1 Year"}]}, "Invalid product data"),
        ({"products": [{"product_type": "IFPD", "qty": 1, "unit_price": 10, "gst": 12.5, "warranty": "1 Year"}]}, "Invalid product data"),
        ({"products": [{"product_type": "IFPD", "qty": 1, "unit_price": 10, "gst": "18"}]}, "Invalid product data"),
        ({"products": []}, "Invalid product data"),
    ],
)
def test_create_rejects_invalid_input(db, make_user, effects, overrides, message):
    with pytest.raises(ValidationError) as exc:
        lifecycle.create_order(db, OrderCreate(**order_payload(**overrides)), make_user(), effects)
    assert exc.value.message == message
    assert db.query(Order).count() == 0
    assert effects.publisher.events == []


def test_demo_order_needs_no_payment_terms(new_order):
    order = new_order(order_type="Demo", payment_terms="", demo_date="2024-05-01")
    assert order.order_type == "Demo"
    assert order.demo_date.year == 2024


def test_edit_ignores_fields_outside_allow_list(db, new_order, make_user, effects):
    order = new_order()
    editor = make_user(role="Accounts")
    code, number, creator = order.order_code, order.order_number, order.created_by
    lifecycle.edit_order(
        db,
        order.id,
        {
            "order_code": "PMTO999999",
            "order_number": 999999,
            "created_by": str(editor.id),
            "id": str(uuid.uuid4()),
            "not_a_field": "x",
            "remarks_by_accounts": "checked",
        },
        editor,
        effects,
    )
    db.expire_all()
    fresh = db.get(Order, order.id)
    assert fresh.order_code == code
    assert fresh.order_number == number
    assert fresh.created_by == creator
    assert fresh.remarks_by_accounts == "checked"


def test_edit_fulfilled_forces_complete(db, new_order, make_user, effects):
    order = new_order(dispatch_from="Morinda")
    updated = lifecycle.edit_order(db, order.id, {"fulfilling_status": "Fulfilled"}, make_user(role="Production"), effects)
    assert updated.completion_status == "Complete"
    assert updated.fulfillment_date is not None


def test_edit_without_fulfilling_status_keeps_completion(db, new_order, make_user, effects):
    order = new_order()
    assert order.fulfilling_status == "Fulfilled"
    updated = lifecycle.edit_order(db, order.id, {"completion_status": "In Progress"}, make_user(role="Admin"), effects)
    assert updated.completion_status == "In Progress"


def test_edit_does_not_check_intake_vocabularies(db, new_order, make_user, effects):
    order = new_order()
    updated = lifecycle.edit_order(db, order.id, {"payment_method": "UPI"}, make_user(role="Accounts"), effects)
    assert updated.payment_method == "UPI"


def test_edit_keeps_existing_fulfillment_date(db, new_order, make_user, effects):
    order = new_order(dispatch_from="Morinda")
    updated = lifecycle.edit_order(
        db,
        order.id,
        {"fulfilling_status": "Fulfilled", "fulfillment_date": "2024-01-15"},
        make_user(role="Production"),
        effects,
    )
    assert updated.fulfillment_date.date().isoformat() == "2024-01-15"


def test_edit_coerces_dates_and_rejects_garbage(db, new_order, make_user, effects):
    order = new_order()
    actor = make_user(role="Admin")
    updated = lifecycle.edit_order(db, order.id, {"dispatch_date": "2024-03-05T10:00:00Z", "receipt_date": ""}, actor, effects)
    assert updated.dispatch_date.year == 2024
    assert updated.receipt_date is None
    with pytest.raises(ValidationError):
        lifecycle.edit_order(db, order.id, {"invoice_date": "someday"}, actor, effects)


def test_edit_status_axes_are_unguarded(db, new_order, make_user, effects):
    order = new_order()
    updated = lifecycle.edit_order(db, order.id, {"bill_status": "Billing Complete"}, make_user(role="Bill"), effects)
    assert updated.bill_status == "Billing Complete"
    assert updated.sostatus == "Pending for Approval"


def test_edit_dispatch_queues_status_mail(db, new_order, make_user, effects, publisher):
    order = new_order()
    effects.defer.calls.clear()
    lifecycle.edit_order(db, order.id, {"dispatch_status": "Dispatched", "docket_no": "DK-1"}, make_user(role="Admin"), effects)
    assert len(effects.defer.calls) == 1
    _, args, _ = effects.defer.calls[0]
    assert args[0] == "dispatch_status"
    assert args[2].startswith("Order Dispatched Confirmation")
    assert publisher.names()[-1] == "updateOrder"
    assert "Order updated by" in publisher.events[-1][1]["notification"]


def test_edit_missing_order(db, make_user, effects):
    with pytest.raises(NotFoundError):
        lifecycle.edit_order(db, uuid.uuid4(), {"remarks": "x"}, make_user(), effects)


def test_sales_cannot_delete_others_orders(db, new_order, make_user, effects, publisher):
    owner = make_user(role="Sales")
    order = new_order(actor=owner)
    other = make_user(role="Sales")
    with pytest.raises(AuthorizationError):
        lifecycle.delete_order(db, order.id, other, effects)
    db.expire_all()
    assert db.get(Order, order.id) is not None
    assert "deleteOrder" not in publisher.names()


def test_sales_deletes_own_and_admin_deletes_any(db, new_order, make_user, effects, publisher):
    owner = make_user(role="Sales")
    mine = new_order(actor=owner)
    theirs = new_order(actor=make_user(role="Sales"))
    lifecycle.delete_order(db, mine.id, owner, effects)
    lifecycle.delete_order(db, theirs.id, make_user(role="Admin"), effects)
    assert db.query(Order).count() == 0
    assert publisher.names().count("deleteOrder") == 2
    messages = [n.message for n in db.query(Notification).all()]
    assert any(m.startswith("Order deleted by") for m in messages)


def test_delete_missing_order(db, make_user, effects):
    with pytest.raises(NotFoundError):
        lifecycle.delete_order(db, uuid.uuid4(), make_user(role="Admin"), effects)


def test_visible_orders_scoped_for_sales(db, new_order, make_user):
    a = make_user(role="Sales")
    b = make_user(role="Sales")
    new_order(actor=a)
    new_order(actor=a)
    new_order(actor=b)
    assert lifecycle.visible_orders_query(db, a).count() == 2
    assert lifecycle.visible_orders_query(db, make_user(role="Production")).count() == 3
