"""initial late-pass schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("org_id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("role", sa.String(length=30), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_org_id", "users", ["org_id"], unique=False)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)

    op.create_table(
        "timetables",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("org_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_timetables_org_id", "timetables", ["org_id"], unique=False)
    op.create_index("ix_timetables_start_at", "timetables", ["start_at"], unique=False)

    op.create_table(
        "late_pass_configs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("org_id", sa.String(length=36), nullable=False),
        sa.Column("max_generation_delay_minutes", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("max_acceptance_delay_minutes", sa.Integer(), nullable=False, server_default="15"),
        sa.Column("ticket_validity_days", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("allow_multiple_active_tickets", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_expire_tickets", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("updated_by_user_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_late_pass_configs_org_id", "late_pass_configs", ["org_id"], unique=True)

    op.create_table(
        "late_pass_tickets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("ticket_number", sa.String(length=20), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("timetable_id", sa.String(length=36), nullable=False),
        sa.Column("org_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=12), nullable=False, server_default="ISSUED"),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("attendance_status", sa.String(length=12), nullable=True),
        sa.Column("qr_code_data", sa.Text(), nullable=False),
        sa.Column("issued_by_user_id", sa.String(length=36), nullable=False),
        sa.Column("canceled_by_user_id", sa.String(length=36), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_late_pass_tickets_ticket_number", "late_pass_tickets", ["ticket_number"], unique=True)
    op.create_index("ix_late_pass_tickets_student_status_expires", "late_pass_tickets",
                    ["student_id", "status", "expires_at"], unique=False)
    op.create_index("ix_late_pass_tickets_timetable_status", "late_pass_tickets", ["timetable_id", "status"], unique=False)
    op.create_index("ix_late_pass_tickets_org_issued_at", "late_pass_tickets", ["org_id", "issued_at"], unique=False)
    op.create_index("ix_late_pass_tickets_status_expires", "late_pass_tickets", ["status", "expires_at"], unique=False)

    op.create_table(
        "late_pass_ticket_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("ticket_id", sa.String(length=36), nullable=False),
        sa.Column("from_status", sa.String(length=12), nullable=True),
        sa.Column("to_status", sa.String(length=12), nullable=False),
        sa.Column("actor_user_id", sa.String(length=36), nullable=False),
        sa.Column("details_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_late_pass_ticket_events_ticket_id", "late_pass_ticket_events", ["ticket_id"], unique=False)
    op.create_index("ix_late_pass_ticket_events_actor_user_id", "late_pass_ticket_events", ["actor_user_id"], unique=False)

    op.create_table(
        "late_pass_ticket_sequences",
        sa.Column("year", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("last_number", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "late_pass_student_guards",
        sa.Column("student_id", sa.String(length=36), primary_key=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "attendance_records",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("org_id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("timetable_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=12), nullable=False, server_default="LATE"),
        sa.Column("arrived_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False, server_default="late_pass"),
        sa.Column("ticket_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("ticket_id", name="uq_attendance_records_ticket_id"),
    )
    op.create_index("ix_attendance_records_org_id", "attendance_records", ["org_id"], unique=False)
    op.create_index("ix_attendance_records_student_id", "attendance_records", ["student_id"], unique=False)
    op.create_index("ix_attendance_records_timetable_id", "attendance_records", ["timetable_id"], unique=False)


def downgrade() -> None:
    op.drop_table("attendance_records")
    op.drop_table("late_pass_student_guards")
    op.drop_table("late_pass_ticket_sequences")
    op.drop_index("ix_late_pass_ticket_events_actor_user_id", table_name="late_pass_ticket_events")
    op.drop_index("ix_late_pass_ticket_events_ticket_id", table_name="late_pass_ticket_events")
    op.drop_table("late_pass_ticket_events")
    op.drop_index("ix_late_pass_tickets_status_expires", table_name="late_pass_tickets")
    op.drop_index("ix_late_pass_tickets_org_issued_at", table_name="late_pass_tickets")
    op.drop_index("ix_late_pass_tickets_timetable_status", table_name="late_pass_tickets")
    op.drop_index("ix_late_pass_tickets_student_status_expires", table_name="late_pass_tickets")
    op.drop_index("ix_late_pass_tickets_ticket_number", table_name="late_pass_tickets")
    op.drop_table("late_pass_tickets")
    op.drop_index("ix_late_pass_configs_org_id", table_name="late_pass_configs")
    op.drop_table("late_pass_configs")
    op.drop_index("ix_timetables_start_at", table_name="timetables")
    op.drop_index("ix_timetables_org_id", table_name="timetables")
    op.drop_table("timetables")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_org_id", table_name="users")
    op.drop_table("users")
