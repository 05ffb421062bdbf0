"""Advisory edit locks on production orders."""
import pytest

from pchart.core.events import LOCK_STATE_CHANGED, event_bus
from pchart.models.notification import NotificationType
from pchart.services.errors import LockConflictError, PermissionDeniedError, DomainValidationError
from pchart.services.lock_service import LockService
from pchart.services.notification_service import NotificationService
from pchart.services.operation_service import OperationService
from pchart.services.user_service import UserService


async def test_acquire_and_reenter(db, actors, order_factory):
    await order_factory("PO-200")
    locks = LockService(db)

    first = await locks.acquire("PO-200", actors["operator"])
    again = await locks.acquire("PO-200", actors["operator"])

    assert first.success and first.is_owner
    assert again.is_owner
    assert again.lock_info.user_id == actors["operator"].user_id
    assert again.lock_info.locked_at == first.lock_info.locked_at


async def test_lock_handoff_through_force_release(db, actors, order_factory):
    """A holds the lock, B is refused, B's release is a no-op, admin frees it for B."""
    await order_factory("PO-200")
    locks = LockService(db)
    user_a, user_b, admin = actors["operator"], actors["operator2"], actors["admin"]

    await locks.acquire("PO-200", user_a)

    with pytest.raises(LockConflictError) as exc:
        await locks.acquire("PO-200", user_b)
    assert exc.value.status_code == 423
    assert exc.value.details["lock_info"]["user_name"] == "Oscar Operator"
    assert exc.value.details["lock_info"]["user_id"] == str(user_a.user_id)
    assert exc.value.details["is_orphaned"] is False

    released = await locks.release("PO-200", user_b)
    assert released.released is False
    status = await locks.status("PO-200", user_b)
    assert status.is_locked and status.lock_info.user_id == user_a.user_id

    forced = await locks.force_release("PO-200", admin)
    assert forced.released is True
    assert forced.lock_info.user_id == user_a.user_id

    taken = await locks.acquire("PO-200", user_b)
    assert taken.is_owner
    assert taken.lock_info.user_id == user_b.user_id


async def test_holder_release(db, actors, order_factory):
    await order_factory("PO-1")
    locks = LockService(db)
    await locks.acquire("PO-1", actors["operator"])

    result = await locks.release("PO-1", actors["operator"])

    assert result.released is True
    status = await locks.status("PO-1", actors["operator"])
    assert status.is_locked is False
    assert status.lock_info is None


async def test_viewer_gets_read_only(db, actors, order_factory):
    await order_factory("PO-1")
    locks = LockService(db)

    result = await locks.acquire("PO-1", actors["viewer"])

    assert result.read_only is True
    assert result.is_owner is False
    assert (await locks.status("PO-1", actors["viewer"])).is_locked is False


async def test_force_release_is_admin_only(db, actors, order_factory):
    await order_factory("PO-1")
    locks = LockService(db)
    await locks.acquire("PO-1", actors["operator"])

    with pytest.raises(PermissionDeniedError):
        await locks.force_release("PO-1", actors["operator2"])


async def test_force_release_notifies_previous_holder(db, actors, order_factory):
    await order_factory("PO-1")
    locks = LockService(db)
    await locks.acquire("PO-1", actors["operator"])

    await locks.force_release("PO-1", actors["admin"])

    notifications, total = await NotificationService(db).list_for_user(actors["operator"].user_id)
    assert total == 1
    assert notifications[0].notification_type == NotificationType.LOCK_FORCE_RELEASED.value
    assert "PO-1" in notifications[0].message


async def test_unsupported_resource_type(db, actors, order_factory):
    await order_factory("PO-1")
    with pytest.raises(DomainValidationError):
        await LockService(db).acquire("PO-1", actors["operator"], resource_type="workOrder")


async def test_lock_blocks_other_users_mutations(db, actors, order_factory):
    await order_factory("PO-1")
    await LockService(db).acquire("PO-1", actors["operator"])

    with pytest.raises(LockConflictError):
        await OperationService(db).start("PO-1", "OP10", actors["operator2"])

    operation = await OperationService(db).start("PO-1", "OP10", actors["operator"])
    assert operation.start_time is not None


async def test_lock_of_deleted_user_is_orphaned(db, actors, users, order_factory):
    await order_factory("PO-1")
    locks = LockService(db)
    await locks.acquire("PO-1", actors["operator"])

    await UserService(db).delete(users["operator"].id, actors["admin"])

    status = await locks.status("PO-1", actors["operator2"])
    assert status.is_locked is True
    assert status.is_orphaned is True
    with pytest.raises(LockConflictError) as exc:
        await locks.acquire("PO-1", actors["operator2"])
    assert exc.value.details["is_orphaned"] is True

    forced = await locks.force_release("PO-1", actors["admin"])
    assert forced.released is True
    assert (await locks.acquire("PO-1", actors["operator2"])).is_owner


async def test_lock_changes_emit_events(db, actors, order_factory, recorded_events):
    await order_factory("PO-1")
    locks = LockService(db)
    await locks.acquire("PO-1", actors["operator"])
    await locks.force_release("PO-1", actors["admin"])
    await event_bus.drain()

    actions = [payload["action"] for name, payload in recorded_events if name == LOCK_STATE_CHANGED]
    assert actions == ["acquired", "force-released"]


async def test_two_sessions_race_for_unlocked_order(db, actors, session_factory, order_factory):
    """Both sessions load the order unlocked; exactly one acquire succeeds."""
    await order_factory("PO-700")
    await db.commit()

    async with session_factory() as first, session_factory() as second:
        first_locks, second_locks = LockService(first), LockService(second)

        assert (await first_locks.status("PO-700", actors["operator"])).is_locked is False
        await first.commit()
        assert (await second_locks.status("PO-700", actors["operator2"])).is_locked is False
        await second.commit()

        won = await first_locks.acquire("PO-700", actors["operator"])
        await first.commit()
        assert won.is_owner

        with pytest.raises(LockConflictError) as exc:
            await second_locks.acquire("PO-700", actors["operator2"])
        assert exc.value.details["lock_info"]["user_id"] == str(actors["operator"].user_id)
        await second.rollback()

    status = await LockService(db).status("PO-700", actors["operator2"])
    assert status.lock_info.user_id == actors["operator"].user_id
