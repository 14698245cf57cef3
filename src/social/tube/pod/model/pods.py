"""Federation relationships with peer pods."""
from typing import Any, Dict

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from social.tube.pod.model.base import Base, isoformat, timestamp

STATE_PENDING = "pending"
STATE_ACTIVE = "active"
STATE_TERMINATED = "terminated"
LIVE_STATES = (STATE_PENDING, STATE_ACTIVE)


class PodRelationship(Base):
    """Link between this pod and one peer, keyed by the peer's normalised address."""

    __tablename__ = "pod_relationships"

    host: Mapped[str] = mapped_column(String(512), primary_key=True)
    state: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[timestamp]
    updated_at: Mapped[timestamp]

    def to_json(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "state": self.state,
            "createdDate": isoformat(self.created_at),
            "updatedDate": isoformat(self.updated_at),
        }
