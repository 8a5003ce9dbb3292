import io
from typing import Any, Callable, Dict, Iterable, List, Tuple

from openpyxl import Workbook, load_workbook

from ..errors import ValidationError
from ..models.models import Order
from .time_utils import iso_date

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SHEET_TITLE = "Orders"

Column = Tuple[str, Callable[[Order], Any]]


def _text(attr: str, default: str = "") -> Callable[[Order], Any]:
    return lambda o: getattr(o, attr) or default


def _number(attr: str) -> Callable[[Order], Any]:
    return lambda o: getattr(o, attr) if getattr(o, attr) is not None else ""


def _date(attr: str) -> Callable[[Order], Any]:
    return lambda o: iso_date(getattr(o, attr))


# Repeated on every product line of an order
ORDER_COLUMNS: List[Column] = [
    ("Order ID", _text("order_code")),
    ("SO Date", _date("so_date")),
    ("Dispatch From", _text("dispatch_from")),
    ("Dispatch Date", _date("dispatch_date")),
    ("Contact Person Name", _text("name")),
    ("City", _text("city")),
    ("State", _text("state")),
    ("Pin Code", _text("pin_code")),
    ("Contact No", _text("contact_no")),
    ("Alternate No", _text("alternate_no")),
    ("Customer Email", _text("customer_email")),
    ("Customer Name", _text("customer_name")),
]

PRODUCT_COLUMNS: List[Tuple[str, Callable[[Dict[str, Any]], Any]]] = [
    ("Product Type", lambda p: p.get("product_type") or ""),
    ("Size", lambda p: p.get("size") or "N/A"),
    ("Specification", lambda p: p.get("spec") or "N/A"),
    ("Quantity", lambda p: p.get("qty") or 0),
    ("Unit Price", lambda p: p.get("unit_price") or 0),
    ("GST", lambda p: p.get("gst") or ""),
    ("Model Nos", lambda p: ", ".join(p.get("model_nos") or [])),
    ("Brand", lambda p: p.get("brand") or ""),
    ("Warranty", lambda p: p.get("warranty") or ""),
]

# Written on the first line of each order only
FIRST_LINE_COLUMNS: List[Column] = [
    ("Total", _number("total")),
    ("Payment Collected", _number("payment_collected")),
    ("Payment Method", _text("payment_method")),
    ("Payment Due", _number("payment_due")),
    ("Payment Terms", _text("payment_terms")),
    ("Credit Days", _text("credit_days")),
    ("NEFT Transaction ID", _text("neft_transaction_id")),
    ("Cheque ID", _text("cheque_id")),
    ("Freight Charges", _number("freight_charges")),
    ("Freight Status", _text("freight_status")),
    ("Actual Freight", _number("actual_freight")),
    ("Installation Charges", _number("installation_charges")),
    ("Installation Charges Status", _text("install_charges_status")),
    ("GST No", _text("gst_no")),
    ("Order Type", _text("order_type")),
    ("GEM Order Number", _text("gem_order_number")),
    ("Delivery Date", _date("delivery_date")),
    ("Demo Date", _date("demo_date")),
    ("Installation Status", _text("installation_status", "Pending")),
    ("Installation Report", _text("installation_report")),
    ("Remarks By Installation", _text("remarks_by_installation")),
    ("Dispatch Status", _text("dispatch_status", "Not Dispatched")),
    ("Sales Person", _text("sales_person")),
    ("Reporting Manager", _text("report")),
    ("Company", _text("company")),
    ("Transporter", _text("transporter")),
    ("Transporter Details", _text("transporter_details")),
    ("Docket No", _text("docket_no")),
    ("Receipt Date", _date("receipt_date")),
    ("Shipping Address", _text("shipping_address")),
    ("Billing Address", _text("billing_address")),
    ("Invoice No", _text("invoice_no")),
    ("Invoice Date", _date("invoice_date")),
    ("Fulfilling Status", _text("fulfilling_status", "Pending")),
    ("Fulfillment Date", _date("fulfillment_date")),
    ("Remarks By Production", _text("remarks_by_production")),
    ("Remarks By Accounts", _text("remarks_by_accounts")),
    ("Payment Received", _text("payment_received", "Not Received")),
    ("Bill Number", _text("bill_number")),
    ("PI Number", _text("pi_number")),
    ("Remarks By Billing", _text("remarks_by_billing")),
    ("Remarks By Dispatch", _text("remarks_by_dispatch")),
    ("Verification Remarks", _text("verification_remarks")),
    ("Bill Status", _text("bill_status", "Pending")),
    ("Completion Status", _text("completion_status", "In Progress")),
    ("SO Status", _text("sostatus", "Pending for Approval")),
    ("Stock Status", _text("stock_status")),
    ("Stamp", _text("stamp")),
    ("Remarks", _text("remarks")),
]

HEADERS = [c[0] for c in ORDER_COLUMNS] + [c[0] for c in PRODUCT_COLUMNS] + [c[0] for c in FIRST_LINE_COLUMNS]

# Stand-in line for an order that has no products
_NO_PRODUCT = {"product_type": "Not Found", "size": "N/A", "spec": "N/A", "qty": 0, "unit_price": 0, "gst": "", "model_nos": []}


def order_rows(order: Order) -> List[List[Any]]:
    rows = []
    products = order.products or [_NO_PRODUCT]
    head = [fn(order) for _, fn in ORDER_COLUMNS]
    for index, product in enumerate(products):
        line = [fn(product) for _, fn in PRODUCT_COLUMNS]
        if index == 0:
            tail = [fn(order) for _, fn in FIRST_LINE_COLUMNS]
        else:
            tail = [""] * len(FIRST_LINE_COLUMNS)
        rows.append(head + line + tail)
    return rows


def build_orders_workbook(orders: Iterable[Order]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_TITLE
    sheet.append(HEADERS)
    for order in orders:
        for row in order_rows(order):
            sheet.append(row)
    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


def read_rows(content: bytes) -> List[Dict[str, Any]]:
    """Read the first sheet into one dict per non-empty row, keyed by header text."""
    try:
        workbook = load_workbook(io.BytesIO(content), data_only=True, read_only=True)
    except Exception:
        raise ValidationError("Unable to read the uploaded Excel file.")
    sheet = workbook.worksheets[0]
    rows_iter = sheet.iter_rows(values_only=True)
    try:
        header_row = next(rows_iter)
    except StopIteration:
        workbook.close()
        return []
    headers = [str(h).strip() if h is not None else "" for h in header_row]

    rows: List[Dict[str, Any]] = []
    for values in rows_iter:
        if not any(v not in (None, "") for v in values):
            continue
        rows.append({h: values[i] if i < len(values) else None for i, h in enumerate(headers) if h})
    workbook.close()
    return rows
