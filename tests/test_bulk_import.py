import io

import pytest
from openpyxl import Workbook, load_workbook

from sohub.errors import ValidationError
from sohub.models.models import Order
from sohub.services import lifecycle
from sohub.services.spreadsheet import HEADERS, build_orders_workbook, read_rows

IMPORT_HEADERS = [
    "Customer Name", "Contact Person Name", "Contact No", "Customer Email", "City", "State", "Pin Code",
    "Product Type", "Quantity", "Unit Price", "GST", "Brand", "Model Nos", "Warranty",
    "Dispatch From", "Order Type", "Freight Charges", "Payment Collected", "Payment Terms", "SO Date",
]


def sheet_row(**overrides):
    row = {
        "Customer Name": "Govt School",
        "Contact Person Name": "Anita",
        "Contact No": 9876543210,
        "Customer Email": "anita@example.com",
        "City": "Ranchi",
        "State": "Jharkhand",
        "Pin Code": 834001,
        "Product Type": "Projector",
        "Quantity": 2,
        "Unit Price": 1000,
        "GST": 18,
        "Brand": "Epson",
        "Model Nos": "",
        "Warranty": "",
        "Dispatch From": "Ranchi",
        "Order Type": "B2C",
        "Freight Charges": 100,
        "Payment Collected": 500,
        "Payment Terms": "Credit",
        "SO Date": "2024-02-01",
    }
    row.update(overrides)
    return row


def xlsx_bytes(rows):
    wb = Workbook()
    ws = wb.active
    ws.append(IMPORT_HEADERS)
    for row in rows:
        ws.append([row.get(h) for h in IMPORT_HEADERS])
    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


def test_read_rows_keys_by_header_and_skips_blank_lines():
    wb = Workbook()
    ws = wb.active
    ws.append(["Customer Name", "Quantity"])
    ws.append(["A", 1])
    ws.append([None, None])
    ws.append(["B", 2])
    out = io.BytesIO()
    wb.save(out)
    rows = read_rows(out.getvalue())
    assert rows == [{"Customer Name": "A", "Quantity": 1}, {"Customer Name": "B", "Quantity": 2}]


def test_read_rows_rejects_non_spreadsheet():
    with pytest.raises(ValidationError):
        read_rows(b"definitely not a zip file")


def test_bulk_import_inserts_one_order_per_row(db, make_user, effects, publisher):
    rows = read_rows(xlsx_bytes([sheet_row(), sheet_row(**{"Customer Name": "Second"})]))
    orders = lifecycle.bulk_import(db, rows, make_user(), effects)
    assert len(orders) == 2
    assert orders[0].order_number < orders[1].order_number
    first = orders[0]
    assert first.contact_no == "9876543210"
    assert first.pin_code == "834001"
    assert first.products[0]["gst"] == "18"
    assert first.products[0]["warranty"] == "1 Year"
    assert first.total == pytest.approx(2 * 1000 * 1.18 + 100)
    assert first.payment_due == pytest.approx(first.total - 500)
    assert first.company == "Promark"
    assert first.so_date.date().isoformat() == "2024-02-01"
    assert publisher.names() == ["newOrder", "newOrder"]


def test_bulk_warranty_defaults(db, make_user, effects):
    rows = [
        sheet_row(**{"Order Type": "B2G"}),
        sheet_row(**{"Product Type": "IFPD", "Brand": "Promark", "Model Nos": "PM-65, PM-75"}),
        sheet_row(**{"Warranty": "2 Years"}),
    ]
    orders = lifecycle.bulk_import(db, rows, make_user(), effects)
    assert [o.products[0]["warranty"] for o in orders] == ["As Per Tender", "3 Years", "2 Years"]
    assert orders[1].products[0]["model_nos"] == ["PM-65", "PM-75"]


def test_one_invalid_row_rejects_whole_batch(db, make_user, effects, publisher):
    rows = [sheet_row(**{"Customer Name": f"School {i}"}) for i in range(10)]
    rows.insert(6, sheet_row(**{"Quantity": 0}))
    with pytest.raises(ValidationError) as exc:
        lifecycle.bulk_import(db, rows, make_user(), effects)
    assert "row 8" in exc.value.message
    assert db.query(Order).count() == 0
    assert publisher.events == []


@pytest.mark.parametrize(
    "overrides",
    [
        {"Dispatch From": "Mumbai"},
        {"Product Type": "IFPD", "Model Nos": ""},
        {"Unit Price": -5},
        {"GST": "abc"},
        {"GST": 5},
        {"GST": "12.5"},
        {"Order Type": "Wholesale"},
        {"Payment Terms": "Whenever"},
        {"Freight Status": "Free"},
    ],
)
def test_bulk_row_rules(db, make_user, effects, overrides):
    with pytest.raises(ValidationError):
        lifecycle.bulk_import(db, [sheet_row(**overrides)], make_user(), effects)


def test_bulk_import_requires_rows(db, make_user, effects):
    with pytest.raises(ValidationError):
        lifecycle.bulk_import(db, [], make_user(), effects)


def test_export_repeats_identity_and_blanks_order_fields(new_order):
    order = new_order(
        products=[
            {"product_type": "IFPD", "qty": 1, "unit_price": 100, "gst": "18", "warranty": "1 Year"},
            {"product_type": "Stand", "qty": 1, "unit_price": 50, "gst": "including", "warranty": "1 Year"},
        ]
    )
    wb = load_workbook(io.BytesIO(build_orders_workbook([order])))
    rows = list(wb.active.iter_rows(values_only=True))
    assert list(rows[0]) == HEADERS
    assert len(rows) == 3
    col = {h: i for i, h in enumerate(HEADERS)}
    first, second = rows[1], rows[2]
    assert first[col["Order ID"]] == second[col["Order ID"]] == order.order_code
    assert first[col["Customer Name"]] == second[col["Customer Name"]] == "Acme School"
    assert first[col["Product Type"]] == "IFPD"
    assert second[col["Product Type"]] == "Stand"
    assert first[col["Total"]] == pytest.approx(168.0)
    assert second[col["Total"]] in (None, "")
    assert second[col["SO Status"]] in (None, "")


def test_export_without_orders_is_header_only():
    wb = load_workbook(io.BytesIO(build_orders_workbook([])))
    rows = list(wb.active.iter_rows(values_only=True))
    assert len(rows) == 1
    assert list(rows[0]) == HEADERS
