"""
Acting user passed explicitly into every service call.

Services never read request or session state; whoever calls them builds an
ActorContext from the authenticated user.
"""
import uuid
from dataclasses import dataclass

from pchart.models.user import User, UserRole


@dataclass(frozen=True)
class ActorContext:
    user_id: uuid.UUID
    user_name: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def is_viewer(self) -> bool:
        return self.role == UserRole.VIEWER.value

    @classmethod
    def from_user(cls, user: User) -> "ActorContext":
        return cls(user_id=user.id, user_name=user.display_name, role=user.role)