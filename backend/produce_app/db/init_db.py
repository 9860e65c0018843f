import asyncio

from produce_app.db.session import engine
from produce_app.db.base import Base

# Import every model so the tables are registered on Base.metadata
from produce_app.models.v1 import (  # noqa: F401
    Store, StoreCreditEntry, Vendor, Product, ProductLedgerEntry, ProductPurchaseLog,
    Order, OrderItem, PreOrder, PreOrderItem, IncomingStock,
    WorkOrder, WorkOrderProduct, WorkOrderStore, WorkOrderStoreItem,
    PurchaseOrder, PurchaseOrderItem, Invoice, VendorCreditMemo,
    VendorPayment, VendorPaymentAllocation, VendorDispute, CreditMemo,
    Adjustment, QualityIssue, StoreInventory
)


async def ensure_tables_exist() -> None:
    """
    Create missing tables (called on application startup).
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


if __name__ == "__main__":
    asyncio.run(ensure_tables_exist())
