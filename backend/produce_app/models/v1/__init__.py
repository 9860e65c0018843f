# v1 data models

from produce_app.models.v1.store import Store, StoreCreditEntry
from produce_app.models.v1.vendor import Vendor
from produce_app.models.v1.product import Product, ProductLedgerEntry, ProductPurchaseLog
from produce_app.models.v1.order import Order, OrderItem, PreOrder, PreOrderItem
from produce_app.models.v1.purchase_order import PurchaseOrder, PurchaseOrderItem
from produce_app.models.v1.incoming_stock import IncomingStock
from produce_app.models.v1.work_order import WorkOrder, WorkOrderProduct, WorkOrderStore, WorkOrderStoreItem
from produce_app.models.v1.invoice import Invoice, invoice_purchase_orders
from produce_app.models.v1.vendor_credit_memo import VendorCreditMemo
from produce_app.models.v1.vendor_payment import VendorPayment, VendorPaymentAllocation
from produce_app.models.v1.vendor_dispute import VendorDispute
from produce_app.models.v1.credit_memo import CreditMemo
from produce_app.models.v1.adjustment import Adjustment
from produce_app.models.v1.quality_issue import QualityIssue
from produce_app.models.v1.store_inventory import StoreInventory

__all__ = [
    "Store",
    "StoreCreditEntry",
    "Vendor",
    "Product",
    "ProductLedgerEntry",
    "ProductPurchaseLog",
    "Order",
    "OrderItem",
    "PreOrder",
    "PreOrderItem",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "IncomingStock",
    "WorkOrder",
    "WorkOrderProduct",
    "WorkOrderStore",
    "WorkOrderStoreItem",
    "Invoice",
    "invoice_purchase_orders",
    "VendorCreditMemo",
    "VendorPayment",
    "VendorPaymentAllocation",
    "VendorDispute",
    "CreditMemo",
    "Adjustment",
    "QualityIssue",
    "StoreInventory",
]
