"""init

Revision ID: 5c1f0e9a7d21
Revises:
Create Date: 2026-10-19 10:12:41.508113

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5c1f0e9a7d21"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "oauth_clients",
        sa.Column("client_id", sa.String(64), primary_key=True),
        sa.Column("secret_hash", sa.String(64), nullable=False),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("grant_types", sa.String(256), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(64), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("idx_users_created_at", "users", ["created_at"])

    op.create_table(
        "oauth_tokens",
        sa.Column("guid", sa.String(64), primary_key=True),
        sa.Column("access_token", sa.String(128), nullable=False, unique=True),
        sa.Column("refresh_token", sa.String(128), nullable=False, unique=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "client_id",
            sa.String(64),
            sa.ForeignKey("oauth_clients.client_id"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("access_token_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("refresh_token_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_oauth_tokens_user_id", "oauth_tokens", ["user_id"])
    op.create_index("idx_oauth_tokens_client_id", "oauth_tokens", ["client_id"])

    op.create_table(
        "videos",
        sa.Column("guid", sa.String(64), primary_key=True),
        sa.Column("author_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.String(512), nullable=False),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("file_ref", sa.String(512), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_videos_author_id", "videos", ["author_id"])
    op.create_index("idx_videos_created_at", "videos", ["created_at"])

    op.create_table(
        "pod_relationships",
        sa.Column("host", sa.String(512), primary_key=True),
        sa.Column("state", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("pod_relationships")
    op.drop_index("idx_videos_created_at", "videos")
    op.drop_index("idx_videos_author_id", "videos")
    op.drop_table("videos")
    op.drop_index("idx_oauth_tokens_client_id", "oauth_tokens")
    op.drop_index("idx_oauth_tokens_user_id", "oauth_tokens")
    op.drop_table("oauth_tokens")
    op.drop_index("idx_users_created_at", "users")
    op.drop_table("users")
    op.drop_table("oauth_clients")
