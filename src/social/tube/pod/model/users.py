"""User accounts local to this pod."""
from typing import Any, Dict

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from social.tube.pod.model.base import Base, isoformat, str64, str256, timestamp

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


class User(Base):
    """Local user account.

    The integer primary key grows with creation order and doubles as the tiebreaker
    for listings sorted on non-unique keys.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str64] = mapped_column(unique=True)
    password_hash: Mapped[str256] = mapped_column(String(256), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_USER)
    created_at: Mapped[timestamp]

    # Ids are never reused, so a stale reference cannot resolve to a newer account.
    __table_args__ = (
        Index("idx_users_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "createdDate": isoformat(self.created_at),
        }
