from fastapi import APIRouter

from pchart.api.v1.endpoints import (
    # Access Control
    auth,
    users,
    # Production Floor
    production_orders,
    operation_steps,
    operation_lines,
    locks,
    operations,
    operation_defects,
    defect_edit_requests,
    # Master Data
    master_defects,
    standard_costs,
    # System
    notifications,
    audit_logs,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Access Control ====================
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"]
)
api_router.include_router(
    users.router,
    prefix="/users",
    tags=["Users"]
)

# ==================== Production Floor ====================
api_router.include_router(
    production_orders.router,
    prefix="/production-orders",
    tags=["Production Orders"]
)
api_router.include_router(
    operation_steps.router,
    prefix="/operation-steps",
    tags=["Operation Steps"]
)
api_router.include_router(
    operation_lines.router,
    prefix="/operation-lines",
    tags=["Operation Lines"]
)
api_router.include_router(
    locks.router,
    prefix="/locks",
    tags=["Locks"]
)
api_router.include_router(
    operations.router,
    prefix="/operations",
    tags=["Operations"]
)
api_router.include_router(
    operation_defects.router,
    prefix="/operation-defects",
    tags=["Operation Defects"]
)
api_router.include_router(
    defect_edit_requests.router,
    prefix="/operation-defects-edit-requests",
    tags=["Defect Edit Requests"]
)

# ==================== Master Data ====================
api_router.include_router(
    master_defects.router,
    prefix="/master-defects",
    tags=["Master Defects"]
)
api_router.include_router(
    standard_costs.router,
    prefix="/standard-costs",
    tags=["Standard Costs"]
)

# ==================== System ====================
api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["Notifications"]
)
api_router.include_router(
    audit_logs.router,
    prefix="/audit-logs",
    tags=["Audit Logs"]
)
