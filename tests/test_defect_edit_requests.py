"""Edit request workflow for completed operations."""
import uuid

import pytest
from pydantic import ValidationError

from pchart.core.events import DEFECT_EDIT_REQUESTED, DEFECT_EDIT_RESOLVED, event_bus
from pchart.models.defect_edit_request import EditRequestStatus, EditRequestType
from pchart.models.notification import NotificationType
from pchart.schemas.defect import DefectEntry
from pchart.schemas.defect_edit_request import DefectEditRequestCreate, DefectEditRequestUpdate
from pchart.services.audit_service import AuditService
from pchart.services.defect_edit_request_service import DefectEditRequestService
from pchart.services.errors import (
    InvalidTransitionError, DomainValidationError, PermissionDeniedError
)
from pchart.services.notification_service import NotificationService
from pchart.services.operation_defect_service import OperationDefectService
from pchart.services.operation_service import OperationService
from pchart.services.production_order_service import ProductionOrderService, find_operation


@pytest.fixture
async def completed_op10(db, actors, defects, order_factory):
    """PO-100 with OP10 completed at output 95 (5 no-good Scratch)."""
    await order_factory("PO-100", 100)
    await OperationService(db).start("PO-100", "OP10", actors["operator"])
    result = await OperationService(db).complete(
        "PO-100", "OP10", actors["operator"], line_no="L1",
        defects=[DefectEntry(defect_id=defects["scratch"].id, quantity=5, quantity_rework=0, quantity_nogood=5)],
    )
    assert result.output_quantity == 95
    return result.operation


def edit_request(record_id, rw, ng, reason="recount"):
    return DefectEditRequestCreate(
        request_type=EditRequestType.EDIT,
        operation_defect_id=record_id,
        requested_rw=rw,
        requested_ng=ng,
        reason=reason,
    )


async def test_approved_edit_changes_ledger_but_not_output(db, actors, completed_op10):
    """Raising no-good from 5 to 8 on a completed OP10 leaves its output at 95."""
    record = completed_op10.defects[0]
    requests = DefectEditRequestService(db)

    request = await requests.create(edit_request(record.id, 0, 8), actors["operator"])
    assert request.status == EditRequestStatus.PENDING.value
    assert (request.current_qty, request.current_ng) == (5, 5)
    assert (request.requested_qty, request.requested_ng) == (8, 8)

    resolved = await requests.resolve(request.id, "approved", actors["admin"], comments="ok")

    assert resolved.status == EditRequestStatus.APPROVED.value
    assert resolved.resolved_by_id == actors["admin"].user_id
    assert resolved.resolved_at is not None
    assert resolved.resolution_note == "ok"

    updated = await OperationDefectService(db).get(record.id)
    assert (updated.quantity, updated.quantity_nogood) == (8, 8)

    # Stored quantities are not re-cascaded after approval
    order = await ProductionOrderService(db).get_by_po_number("PO-100")
    assert find_operation(order, "OP10").output_quantity == 95
    assert find_operation(order, "OP20").input_quantity == 95


async def test_resolve_is_applied_once(db, actors, completed_op10):
    record = completed_op10.defects[0]
    requests = DefectEditRequestService(db)
    request = await requests.create(edit_request(record.id, 0, 8), actors["operator"])
    request_id = request.id
    await requests.resolve(request_id, "approved", actors["admin"])

    with pytest.raises(InvalidTransitionError) as exc:
        await requests.resolve(request_id, "rejected", actors["admin"])
    assert exc.value.details["status"] == EditRequestStatus.APPROVED.value

    await db.rollback()
    assert (await requests.get(request_id)).status == EditRequestStatus.APPROVED.value


async def test_rejected_request_leaves_ledger(db, actors, completed_op10):
    record = completed_op10.defects[0]
    requests = DefectEditRequestService(db)
    request = await requests.create(edit_request(record.id, 0, 1), actors["operator"])

    resolved = await requests.resolve(request.id, "rejected", actors["admin"], comments="no")

    assert resolved.status == EditRequestStatus.REJECTED.value
    assert (await OperationDefectService(db).get(record.id)).quantity_nogood == 5


async def test_only_admin_resolves(db, actors, completed_op10):
    requests = DefectEditRequestService(db)
    request = await requests.create(edit_request(completed_op10.defects[0].id, 0, 8), actors["operator"])

    with pytest.raises(PermissionDeniedError):
        await requests.resolve(request.id, "approved", actors["operator2"])


async def test_admin_cannot_file_requests(db, actors, completed_op10):
    with pytest.raises(DomainValidationError):
        await DefectEditRequestService(db).create(
            edit_request(completed_op10.defects[0].id, 0, 8), actors["admin"]
        )


async def test_request_requires_completed_operation(db, actors, defects, order_factory):
    await order_factory("PO-1")
    await OperationService(db).start("PO-1", "OP10", actors["operator"])
    record = await OperationDefectService(db).record(
        "PO-1", "OP10", DefectEntry(defect_id=defects["scratch"].id, quantity_nogood=1), actors["operator"]
    )

    with pytest.raises(InvalidTransitionError):
        await DefectEditRequestService(db).create(edit_request(record.id, 0, 2), actors["operator"])


async def test_delete_request_zeroes_entry(db, actors, completed_op10):
    record = completed_op10.defects[0]
    requests = DefectEditRequestService(db)
    request = await requests.create(
        DefectEditRequestCreate(
            request_type=EditRequestType.DELETE,
            operation_defect_id=record.id,
            requested_ng=3,
            reason="wrong defect",
        ),
        actors["operator"],
    )
    assert (request.requested_qty, request.requested_ng) == (0, 0)

    await requests.resolve(request.id, "approved", actors["admin"])

    zeroed = await OperationDefectService(db).get(record.id)
    assert (zeroed.quantity, zeroed.quantity_rework, zeroed.quantity_nogood) == (0, 0, 0)


async def test_add_request_creates_entry(db, actors, defects, completed_op10):
    requests = DefectEditRequestService(db)
    request = await requests.create(
        DefectEditRequestCreate(
            request_type=EditRequestType.ADD,
            operation_id=completed_op10.id,
            defect_id=defects["dent"].id,
            requested_rw=2,
            reason="missed at completion",
        ),
        actors["operator"],
    )
    assert request.operation_defect_id is None
    assert request.current_qty == 0

    resolved = await requests.resolve(request.id, "approved", actors["admin"])

    assert resolved.operation_defect_id is not None
    added = await OperationDefectService(db).get(resolved.operation_defect_id)
    assert (added.defect_name, added.quantity, added.quantity_rework) == ("Dent", 2, 2)


async def test_add_request_needs_target(db, actors, completed_op10):
    with pytest.raises(DomainValidationError):
        await DefectEditRequestService(db).create(
            DefectEditRequestCreate(request_type=EditRequestType.ADD, operation_id=completed_op10.id, reason="x"),
            actors["operator"],
        )


async def test_requester_amends_pending_request(db, actors, completed_op10):
    requests = DefectEditRequestService(db)
    request = await requests.create(edit_request(completed_op10.defects[0].id, 0, 8), actors["operator"])

    with pytest.raises(PermissionDeniedError):
        await requests.update(request.id, DefectEditRequestUpdate(requested_ng=9), actors["operator2"])

    amended = await requests.update(
        request.id, DefectEditRequestUpdate(requested_rw=1, requested_ng=6, reason="second recount"),
        actors["operator"],
    )
    assert (amended.requested_qty, amended.requested_rw, amended.requested_ng) == (7, 1, 6)
    assert amended.reason == "second recount"

    await requests.resolve(request.id, "rejected", actors["admin"])
    with pytest.raises(InvalidTransitionError):
        await requests.update(request.id, DefectEditRequestUpdate(requested_ng=2), actors["operator"])


async def test_notifications_and_counts(db, actors, completed_op10):
    requests = DefectEditRequestService(db)
    notifications = NotificationService(db)
    request = await requests.create(edit_request(completed_op10.defects[0].id, 0, 8), actors["operator"])

    admin_counts = await notifications.get_counts(actors["admin"].user_id)
    assert admin_counts["unread"] == 1
    assert admin_counts["by_type"] == {NotificationType.DEFECT_EDIT.value: 1}
    assert await requests.count("pending") == 1

    await requests.resolve(request.id, "approved", actors["admin"])

    assert await requests.count("pending") == 0
    assert await requests.count("all") == 1
    inbox, total = await notifications.list_for_user(actors["operator"].user_id)
    assert total == 1
    assert inbox[0].notification_type == NotificationType.DEFECT_EDIT_RESOLVED.value

    assert await notifications.mark_read(actors["admin"].user_id) == 1
    assert (await notifications.get_counts(actors["admin"].user_id))["unread"] == 0


async def test_list_filters_and_sorting(db, actors, defects, completed_op10):
    requests = DefectEditRequestService(db)
    record = completed_op10.defects[0]
    first = await requests.create(edit_request(record.id, 0, 8), actors["operator"])
    await requests.create(edit_request(record.id, 0, 2), actors["operator2"])
    await requests.resolve(first.id, "rejected", actors["admin"])

    pending, total = await requests.list_requests(status="pending")
    assert total == 1
    assert pending[0].requested_ng == 2

    everything, total = await requests.list_requests(status="all", sort_field="requested_qty", sort_direction="asc")
    assert total == 2
    assert [r.requested_qty for r in everything] == [2, 8]

    with pytest.raises(DomainValidationError):
        await requests.list_requests(sort_field="reason")


async def test_workflow_emits_events(db, actors, completed_op10, recorded_events):
    requests = DefectEditRequestService(db)
    request = await requests.create(edit_request(completed_op10.defects[0].id, 0, 8), actors["operator"])
    await requests.resolve(request.id, "approved", actors["admin"])
    await event_bus.drain()

    names = [name for name, _ in recorded_events]
    assert DEFECT_EDIT_REQUESTED in names
    assert DEFECT_EDIT_RESOLVED in names
    resolved = next(payload for name, payload in recorded_events if name == DEFECT_EDIT_RESOLVED)
    assert resolved["status"] == "approved"


async def test_amendment_ignores_explicit_nulls(db, actors, completed_op10):
    requests = DefectEditRequestService(db)
    request = await requests.create(edit_request(completed_op10.defects[0].id, 0, 8), actors["operator"])

    amended = await requests.update(
        request.id,
        DefectEditRequestUpdate.model_validate({"requested_rw": None, "requested_ng": 6, "reason": None}),
        actors["operator"],
    )

    assert (amended.requested_qty, amended.requested_rw, amended.requested_ng) == (6, 0, 6)
    assert amended.reason == "recount"


async def test_edit_request_keeps_replacement_on_first_operation(db, actors, defects, order_factory):
    """Raising no-good on OP10 does not wipe the replacement units recorded there."""
    await order_factory("PO-300", 100)
    await OperationService(db).start("PO-300", "OP10", actors["operator"])
    result = await OperationService(db).complete(
        "PO-300", "OP10", actors["operator"], line_no="L1",
        defects=[DefectEntry(defect_id=defects["scratch"].id, quantity_nogood=5, quantity_replacement=3)],
    )
    assert result.output_quantity == 98
    record = result.operation.defects[0]

    requests = DefectEditRequestService(db)
    request = await requests.create(edit_request(record.id, 0, 8), actors["operator"])
    assert (request.current_replacement, request.requested_replacement) == (3, 3)

    await requests.resolve(request.id, "approved", actors["admin"])

    updated = await OperationDefectService(db).get(record.id)
    assert (updated.quantity_nogood, updated.quantity_replacement) == (8, 3)


def test_blank_reason_rejected():
    with pytest.raises(ValidationError):
        edit_request(uuid.uuid4(), 0, 1, reason="   ")
    with pytest.raises(ValidationError):
        DefectEditRequestUpdate(reason="  ")

    assert edit_request(uuid.uuid4(), 0, 1, reason="  miscount ").reason == "miscount"


async def test_concurrent_resolution_applies_once(db, actors, session_factory, completed_op10):
    """Two admin sessions both see the request pending; only one resolution wins."""
    record = completed_op10.defects[0]
    request = await DefectEditRequestService(db).create(edit_request(record.id, 0, 8), actors["operator"])
    request_id = request.id
    await db.commit()

    async with session_factory() as first, session_factory() as second:
        first_requests = DefectEditRequestService(first)
        second_requests = DefectEditRequestService(second)

        assert (await first_requests.get(request_id)).is_pending
        await first.commit()
        assert (await second_requests.get(request_id)).is_pending
        await second.commit()

        approved = await first_requests.resolve(request_id, "approved", actors["admin"])
        assert approved.status == EditRequestStatus.APPROVED.value
        await first.commit()

        with pytest.raises(InvalidTransitionError) as exc:
            await second_requests.resolve(request_id, "rejected", actors["admin"])
        assert exc.value.details["status"] == EditRequestStatus.APPROVED.value
        await second.rollback()

    assert (await DefectEditRequestService(db).get(request_id)).status == EditRequestStatus.APPROVED.value
    assert (await OperationDefectService(db).get(record.id)).quantity_nogood == 8
    _, resolutions = await AuditService(db).get_logs(action="RESOLVE_DEFECT_EDIT", entity_id=request_id)
    assert resolutions == 1
