"""Role checks shared by the services."""
from pchart.core.actor import ActorContext
from pchart.services.errors import PermissionDeniedError


def ensure_admin(actor: ActorContext, action: str) -> None:
    """Raise PermissionDeniedError unless the actor is an admin."""
    if not actor.is_admin:
        raise PermissionDeniedError(
            f"Only admins can {action}",
            details={"role": actor.role}
        )


def ensure_not_viewer(actor: ActorContext, action: str) -> None:
    if actor.is_viewer:
        raise PermissionDeniedError(
            f"Viewers cannot {action}",
            details={"role": actor.role}
        )
