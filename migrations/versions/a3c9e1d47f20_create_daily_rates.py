"""create daily_rates

Revision ID: a3c9e1d47f20
Revises:
Create Date: 2026-10-18 09:12:41.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a3c9e1d47f20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Frozen at the time of this revision; later currency additions need their own migration.
CURRENCY_CODES = (
    "INR", "USD", "EUR", "GBP", "CHF", "AUD", "CAD", "SGD", "JPY", "CNY", "SAR",
    "QAR", "THB", "AED", "MYR", "KRW", "SEK", "DKK", "HKD", "KWD", "BHD", "OMR",
)


def upgrade() -> None:
    """Upgrade schema."""
    rate_columns = [
        sa.Column(f"{code}_{side}", sa.Numeric(precision=18, scale=6), nullable=True)
        for code in CURRENCY_CODES
        for side in ("buy", "sell")
    ]
    op.create_table(
        "daily_rates",
        sa.Column("date", sa.Date(), nullable=False),
        *rate_columns,
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("date"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("daily_rates")
