"""Line numbers configured per operation."""
import pytest

from pchart.models.production import OperationState
from pchart.schemas.production import OperationLineCreate
from pchart.services.errors import DomainValidationError, DuplicateError, PermissionDeniedError
from pchart.services.operation_line_service import OperationLineService
from pchart.services.operation_service import OperationService
from pchart.services.production_order_service import ProductionOrderService, find_operation


@pytest.fixture
async def op10_lines(db, actors):
    lines = OperationLineService(db)
    for number in ("L2", "L1"):
        await lines.create(OperationLineCreate(operation_number="op10", line_number=number), actors["admin"])
    return lines


async def test_lines_listed_per_operation(db, actors, op10_lines):
    await op10_lines.create(OperationLineCreate(operation_number="OP20", line_number="L7"), actors["admin"])

    assert [line.line_number for line in await op10_lines.list_lines("Op10")] == ["L1", "L2"]
    assert [line.operation_number for line in await op10_lines.list_lines()] == ["OP10", "OP10", "OP20"]
    assert await op10_lines.list_lines("OP30") == []


async def test_line_catalog_is_admin_managed(db, actors, op10_lines):
    with pytest.raises(PermissionDeniedError):
        await op10_lines.create(OperationLineCreate(operation_number="OP10", line_number="L3"), actors["operator"])
    with pytest.raises(DuplicateError):
        await op10_lines.create(OperationLineCreate(operation_number="OP10", line_number="l1"), actors["admin"])

    line = (await op10_lines.list_lines("OP10"))[0]
    await op10_lines.delete(line.id, actors["admin"])
    assert [line.line_number for line in await op10_lines.list_lines("OP10")] == ["L2"]


async def test_completion_checks_configured_lines(db, actors, order_factory, op10_lines):
    await order_factory("PO-40", 50)
    service = OperationService(db)
    await service.start("PO-40", "OP10", actors["operator"])

    with pytest.raises(DomainValidationError) as exc:
        await service.complete("PO-40", "OP10", actors["operator"], line_no="L9")
    assert exc.value.details["allowed"] == ["L1", "L2"]
    await db.rollback()

    order = await ProductionOrderService(db).get_by_po_number("PO-40")
    assert find_operation(order, "OP10").state == OperationState.STARTED

    result = await service.complete("PO-40", "OP10", actors["operator"], line_no="l2")
    assert result.output_quantity == 50


async def test_unconfigured_operation_accepts_any_line(db, actors, order_factory, op10_lines):
    await order_factory("PO-41", 10)
    service = OperationService(db)
    await service.start("PO-41", "OP10", actors["operator"])
    await service.complete("PO-41", "OP10", actors["operator"], line_no="L1")

    result = await service.complete("PO-41", "OP20", actors["operator"], line_no="ANY-LINE")
    assert result.operation.line_no == "ANY-LINE"
