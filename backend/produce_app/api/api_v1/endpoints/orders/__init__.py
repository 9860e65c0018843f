"""
Order API package

Split by concern:
- core: response building, pallet estimate, lookups
- stock_ops: stock check, ledger writes, shared order creation
- pre_order_ops: PreOrder lines and confirmation
- crud: list, create, read, update, soft delete
- actions: payment, shipping, pallet info, statements, dashboard
- matrix: weekly order matrix and PreOrder confirmation
"""

from fastapi import APIRouter
from .matrix import router as matrix_router
from .actions import router as actions_router
from .crud import router as crud_router

router = APIRouter()

# Fixed paths first so they are not captured by /{order_id}
router.include_router(matrix_router)
router.include_router(actions_router)
router.include_router(crud_router)
