"""Import every model so Base.metadata knows all tables."""
from pchart.models.user import User, UserRole
from pchart.models.production import (
    OperationStep,
    OperationLine,
    ProductionOrder,
    ProductionOrderStatus,
    Operation,
    OperationState,
)
from pchart.models.defect import MasterDefect, OperationDefect
from pchart.models.defect_edit_request import (
    DefectEditRequest,
    EditRequestType,
    EditRequestStatus,
)
from pchart.models.standard_cost import StandardCost
from pchart.models.notification import Notification, NotificationType
from pchart.models.audit_log import AuditLog

__all__ = [
    "User",
    "UserRole",
    "OperationStep",
    "OperationLine",
    "ProductionOrder",
    "ProductionOrderStatus",
    "Operation",
    "OperationState",
    "MasterDefect",
    "OperationDefect",
    "DefectEditRequest",
    "EditRequestType",
    "EditRequestStatus",
    "StandardCost",
    "Notification",
    "NotificationType",
    "AuditLog",
]
