# Services module
from pchart.services.audit_service import AuditService
from pchart.services.auth_service import AuthService
from pchart.services.notification_service import NotificationService
from pchart.services.production_order_service import ProductionOrderService
from pchart.services.operation_step_service import OperationStepService
from pchart.services.lock_service import LockService
from pchart.services.operation_service import OperationService
from pchart.services.operation_defect_service import OperationDefectService
from pchart.services.defect_edit_request_service import DefectEditRequestService
from pchart.services.master_defect_service import MasterDefectService
from pchart.services.standard_cost_service import StandardCostService
from pchart.services.user_service import UserService

__all__ = [
    "AuditService",
    "AuthService",
    "NotificationService",
    "ProductionOrderService",
    "OperationStepService",
    "LockService",
    "OperationService",
    "OperationDefectService",
    "DefectEditRequestService",
    "MasterDefectService",
    "StandardCostService",
    "UserService",
]
