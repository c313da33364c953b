"""Geofence locations and employee assignments

Revision ID: 0002_geofence_locations
Revises: 0001_initial
Create Date: 2024-07-10 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0002_geofence_locations"
down_revision: Union[str, None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "geofence_locations",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("address", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("radius", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_geofence_locations_latitude"),
        sa.CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_geofence_locations_longitude"),
        sa.CheckConstraint("radius > 0", name="ck_geofence_locations_radius"),
    )
    op.create_index("ix_geofence_locations_created_at", "geofence_locations", ["created_at"], unique=False)

    op.create_table(
        "employee_location_assignments",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("location_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["location_id"], ["geofence_locations.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "location_id", name="uq_employee_location_assignments_pair"),
    )
    op.create_index(
        "ix_employee_location_assignments_employee_id",
        "employee_location_assignments",
        ["employee_id"],
        unique=False,
    )
    op.create_index(
        "ix_employee_location_assignments_location_id",
        "employee_location_assignments",
        ["location_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_employee_location_assignments_location_id", table_name="employee_location_assignments")
    op.drop_index("ix_employee_location_assignments_employee_id", table_name="employee_location_assignments")
    op.drop_table("employee_location_assignments")
    op.drop_index("ix_geofence_locations_created_at", table_name="geofence_locations")
    op.drop_table("geofence_locations")
