"""Bearer tokens issued by the token service.

One row holds an access/refresh pair. A pair is revoked by stamping ``revoked_at``;
refreshing revokes the old pair and inserts a new one.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from social.tube.pod.model.base import Base, guidpk, timestamp


class Token(Base):
    """Access and refresh token pair bound to one user and one client."""

    __tablename__ = "oauth_tokens"

    guid: Mapped[guidpk]
    access_token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    refresh_token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    client_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("oauth_clients.client_id"), nullable=False
    )
    created_at: Mapped[timestamp]
    access_token_expires_at: Mapped[timestamp]
    refresh_token_expires_at: Mapped[timestamp]
    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    __table_args__ = (
        Index("idx_oauth_tokens_user_id", "user_id"),
        Index("idx_oauth_tokens_client_id", "client_id"),
    )

    @property
    def revoked(self) -> bool:
        return self.revoked_at is not None
