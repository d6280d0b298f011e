"""User Directory - role and identity lookups used by the appointment engine"""

from typing import Optional

from sqlalchemy.orm import Session

from ..models import User


class UserDirectory:
    """Read-only access to users"""

    def __init__(self, db: Session):
        self.db = db

    def find_by_roles(self, roles: list[str]) -> list[User]:
        """Active users holding any of the given roles"""
        return (
            self.db.query(User)
            .filter(User.role.in_(roles), User.is_active.is_(True))
            .order_by(User.id)
            .all()
        )

    def find_by_id(self, user_id: Optional[int]) -> Optional[User]:
        if user_id is None:
            return None
        return self.db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def display_name(user: Optional[User], fallback: str = "Customer") -> str:
        """Full name, then username, then the fallback"""
        if not user:
            return fallback
        if user.first_name and user.last_name:
            return f"{user.first_name} {user.last_name}"
        return user.username or user.first_name or fallback
