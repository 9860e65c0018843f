"""API v1 router aggregation"""
from fastapi import APIRouter

from produce_app.api.api_v1.endpoints import (
    auth, stores, store_activity, vendors, products, pre_orders, work_orders, incoming_stock,
    purchase_orders, invoices, vendor_credit_memos, vendor_payments, vendor_disputes,
    credit_memos, adjustments, quality_issues, store_inventory, reports, system
)
from produce_app.api.api_v1.endpoints.orders import router as orders_router

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])

# Stores, catalogue and sales
# Before stores so /analytics is not read as a store id
api_router.include_router(store_activity.router, prefix="/stores", tags=["Stores"])
api_router.include_router(stores.router, prefix="/stores", tags=["Stores"])
api_router.include_router(products.router, prefix="/products", tags=["Products"])
api_router.include_router(orders_router, prefix="/orders", tags=["Orders"])
api_router.include_router(pre_orders.router, prefix="/pre-orders", tags=["PreOrders"])
api_router.include_router(work_orders.router, prefix="/work-orders", tags=["Work orders"])
api_router.include_router(store_inventory.router, prefix="/store-inventory", tags=["Store inventory"])
api_router.include_router(quality_issues.router, prefix="/quality-issues", tags=["Quality issues"])
api_router.include_router(credit_memos.router, prefix="/credit-memos", tags=["Credit memos"])
api_router.include_router(adjustments.router, prefix="/adjustments", tags=["Adjustments"])

# Purchasing and payables
api_router.include_router(vendors.router, prefix="/vendors", tags=["Vendors"])
api_router.include_router(incoming_stock.router, prefix="/incoming-stock", tags=["Incoming stock"])
api_router.include_router(purchase_orders.router, prefix="/purchase-orders", tags=["Purchase orders"])
api_router.include_router(invoices.router, prefix="/invoices", tags=["Invoices"])
api_router.include_router(vendor_credit_memos.router, prefix="/vendor-credit-memos", tags=["Vendor credit memos"])
api_router.include_router(vendor_payments.router, prefix="/vendor-payments", tags=["Vendor payments"])
api_router.include_router(vendor_disputes.router, prefix="/vendor-disputes", tags=["Vendor disputes"])
api_router.include_router(reports.router, prefix="/vendor-reports", tags=["Vendor reports"])

api_router.include_router(system.router, prefix="/system", tags=["System"])
