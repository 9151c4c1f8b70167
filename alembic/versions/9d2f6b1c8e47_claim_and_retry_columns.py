"""post claimed_at and follow-up attempts

Revision ID: 9d2f6b1c8e47
Revises: 4c1e7a9b2d30
Create Date: 2026-10-20 08:41:03.118402

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '9d2f6b1c8e47'
down_revision: Union[str, Sequence[str], None] = '4c1e7a9b2d30'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("posts", sa.Column("claimed_at", sa.DateTime(), nullable=True))
    # existing stuck claims become visible to the stale-claim release
    op.execute("UPDATE posts SET claimed_at = edited_at WHERE status = 'publishing'")
    op.add_column(
        "campaign_contacts",
        sa.Column("follow_up_attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )


def downgrade() -> None:
    op.drop_column("campaign_contacts", "follow_up_attempts")
    op.drop_column("posts", "claimed_at")
