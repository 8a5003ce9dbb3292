"""Closed vocabularies for users and orders."""

ROLES = (
    "Production",
    "Sales",
    "Installation",
    "Finish",
    "Accounts",
    "Admin",
    "SuperAdmin",
    "Verification",
    "Bill",
    "ProductionApproval",
)
ROLE_SALES = "Sales"
ROLE_ADMIN = "Admin"

# Warehouses/branches an order can ship from; "" means not decided yet
DISPATCH_ORIGINS = (
    "Patna",
    "Bareilly",
    "Ranchi",
    "Morinda",
    "Lucknow",
    "Delhi",
    "Jaipur",
    "Rajasthan",
)
# Origins fulfilled from branch stock; everything else is built by Production
EXTERNAL_FULFILLMENT_ORIGINS = tuple(o for o in DISPATCH_ORIGINS if o != "Morinda")
PRODUCTION_ORIGIN = "Morinda"

GST_RATES = ("18", "28")
GST_INCLUDED = "including"
GST_CHOICES = GST_RATES + (GST_INCLUDED,)

ORDER_TYPES = ("B2G", "B2C", "B2B", "Demo", "Replacement", "Stock Out")
ORDER_TYPE_B2G = "B2G"
ORDER_TYPE_DEMO = "Demo"

PAYMENT_METHODS = ("Cash", "NEFT", "RTGS", "Cheque", "")
PAYMENT_TERMS = ("100% Advance", "Partial Advance", "Credit", "")
ADVANCE_PAYMENT_TERMS = ("100% Advance", "Partial Advance")
PAYMENT_TERMS_CREDIT = "Credit"

FREIGHT_STATUSES = ("Self-Pickup", "To Pay", "Including", "Extra")
INSTALL_CHARGES_STATUSES = ("To Pay", "Including", "Extra")

DISPATCH_STATUSES = (
    "Not Dispatched",
    "Docket Awaited Dispatched",
    "Hold by Salesperson",
    "Hold by Customer",
    "Order Cancelled",
    "Dispatched",
    "Delivered",
)
DISPATCHED = "Dispatched"
DELIVERED = "Delivered"

# Installation queue keeps orders in any of these states until the report is filed
INSTALLATION_OPEN_STATUSES = (
    "Pending",
    "In Progress",
    "Failed",
    "Completed",
    "Hold by Salesperson",
    "Hold by Customer",
    "Site Not Ready",
)
INSTALLATION_COMPLETED = "Completed"

FULFILLED = "Fulfilled"
FULFILLING_PENDING = "Pending"

BILL_STATUSES = ("Pending", "Under Billing", "Billing Complete")
BILLING_COMPLETE = "Billing Complete"

PAYMENT_RECEIVED_STATUSES = ("Not Received", "Received")
RECEIVED = "Received"

COMPLETION_STATUSES = ("In Progress", "Complete")
COMPLETE = "Complete"

SO_STATUSES = ("Pending for Approval", "Accounts Approved", "Approved")
SO_PENDING = "Pending for Approval"
SO_ACCOUNTS_APPROVED = "Accounts Approved"
SO_APPROVED = "Approved"

STOCK_STATUSES = ("In Stock", "Not in Stock", "Partial Stock")

NOTIFICATION_SCOPE_ALL = "All"
