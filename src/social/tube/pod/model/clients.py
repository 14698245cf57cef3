"""OAuth client registrations.

A client identifies the calling application rather than a person. Secrets are stored as
SHA-256 digests and the allowed grant types as a space-delimited list.
"""
from typing import List

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from social.tube.pod.model.base import Base, guidpk, str256, timestamp

DEFAULT_GRANT_TYPES = "password refresh_token"


class Client(Base):
    """Registered OAuth client application."""

    __tablename__ = "oauth_clients"

    client_id: Mapped[guidpk]
    secret_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str256] = mapped_column(default="")
    grant_types: Mapped[str256] = mapped_column(default=DEFAULT_GRANT_TYPES)
    created_at: Mapped[timestamp]

    @property
    def grant_type_list(self) -> List[str]:
        return self.grant_types.split()

    def allows_grant_type(self, grant_type: str) -> bool:
        return grant_type in self.grant_type_list
