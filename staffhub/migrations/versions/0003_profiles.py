"""Profiles linked one-to-one with auth users

Revision ID: 0003_profiles
Revises: 0002_geofence_locations
Create Date: 2024-07-13 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0003_profiles"
down_revision: Union[str, None] = "0002_geofence_locations"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("alias", sa.Text(), nullable=True),
        sa.Column("fuel_name", sa.Text(), nullable=True),
        sa.Column("place_of_birth", sa.Text(), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("religion", sa.Text(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("phone_number", sa.Text(), nullable=True),
        sa.Column("relative_phone_number", sa.Text(), nullable=True),
        sa.Column("selfie_url", sa.Text(), nullable=True),
        sa.Column("ktp_url", sa.Text(), nullable=True),
        sa.Column("kk_url", sa.Text(), nullable=True),
        sa.Column("cv_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["id"], ["auth_users.id"], ondelete="CASCADE"),
    )


def downgrade() -> None:
    op.drop_table("profiles")
