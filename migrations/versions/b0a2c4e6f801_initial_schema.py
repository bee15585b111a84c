"""initial schema

Revision ID: b0a2c4e6f801
Revises:
Create Date: 2026-10-17

Creates every table registered on Base.metadata that does not exist yet,
so it can be replayed against a partially provisioned database.
"""

from typing import Sequence, Union

from alembic import op
from sqlalchemy import inspect

from app.boaz.models import Base


# revision identifiers, used by Alembic.
revision: str = "b0a2c4e6f801"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    existing_tables = set(inspect(bind).get_table_names())
    for table in Base.metadata.sorted_tables:
        if table.name not in existing_tables:
            table.create(bind=bind)
            existing_tables.add(table.name)


def downgrade() -> None:
    bind = op.get_bind()
    existing_tables = set(inspect(bind).get_table_names())
    for table in reversed(Base.metadata.sorted_tables):
        if table.name in existing_tables:
            table.drop(bind=bind)
