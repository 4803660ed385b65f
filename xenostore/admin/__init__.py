"""Admin API: coupons, orders and finance under /admin, guarded by ADMIN_SECRET."""
from fastapi import APIRouter, Depends

from xenostore.admin.deps import require_admin
from xenostore.admin.routers import coupons, finance, orders

admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

admin_router.include_router(coupons.router, prefix="/coupons", tags=["admin-coupons"])
admin_router.include_router(orders.router, prefix="/orders", tags=["admin-orders"])
admin_router.include_router(finance.router, prefix="/finance", tags=["admin-finance"])
