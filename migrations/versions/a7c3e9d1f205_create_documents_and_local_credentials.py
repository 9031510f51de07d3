"""create documents and local_credentials tables

Revision ID: a7c3e9d1f205
Revises:
Create Date: 2026-10-17 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a7c3e9d1f205"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    existing = set(sa.inspect(conn).get_table_names())

    if "documents" not in existing:
        op.create_table(
            "documents",
            sa.Column("collection", sa.String(length=128), nullable=False),
            sa.Column("id", sa.String(length=64), nullable=False),
            sa.Column("data_json", sa.Text(), nullable=False, server_default="{}"),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.PrimaryKeyConstraint("collection", "id"),
        )
        op.create_index("idx_documents_collection", "documents", ["collection"])

    if "local_credentials" not in existing:
        op.create_table(
            "local_credentials",
            sa.Column("uid", sa.String(length=64), primary_key=True),
            sa.Column("email", sa.String(length=320), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.UniqueConstraint("email", name="uq_local_credentials_email"),
        )


def downgrade() -> None:
    op.drop_table("local_credentials")
    op.drop_index("idx_documents_collection", table_name="documents")
    op.drop_table("documents")
