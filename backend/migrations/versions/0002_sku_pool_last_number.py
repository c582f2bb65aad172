"""sku_pool_last_number

Revision ID: 0002_sku_pool_last_number
Revises: 0001_subsku_initial
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002_sku_pool_last_number"
down_revision: Union[str, None] = "0001_subsku_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "sku_pools",
        sa.Column("last_number", sa.Integer(), nullable=False, server_default="0"),
    )

    # Backfill with the highest numeric suffix currently stored in each pool
    op.execute(
        """
        UPDATE sku_pools
        SET last_number = COALESCE(
            (
                SELECT max((regexp_match(entry->>'name', '-(\\d+)$'))[1]::integer)
                FROM jsonb_array_elements(sub_units) AS entry
            ),
            0
        )
        """
    )


def downgrade() -> None:
    op.drop_column("sku_pools", "last_number")
