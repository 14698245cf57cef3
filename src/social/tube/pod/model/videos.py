"""Video metadata records and their authoring user."""
from typing import Any, List

from sqlalchemy import JSON, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from social.tube.pod.model.base import Base, guidpk, str512, timestamp


class Video(Base):
    """Uploaded video metadata.

    ``author_id`` is fixed at creation; there is no reassignment. Rows are removed
    together with their author.
    """

    __tablename__ = "videos"

    guid: Mapped[guidpk]
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str512]
    tags: Mapped[List[Any]] = mapped_column(JSON, nullable=False, default=list)
    file_ref: Mapped[str512]
    created_at: Mapped[timestamp]

    __table_args__ = (
        Index("idx_videos_author_id", "author_id"),
        Index("idx_videos_created_at", "created_at"),
    )
