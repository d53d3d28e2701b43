from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    user_role = postgresql.ENUM("admin", "client", name="userrole", create_type=False)
    user_role.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255)),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", user_role, server_default="client"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
    )

    course_level = postgresql.ENUM(
        "beginner", "intermediate", "advanced", "all_levels", name="courselevel", create_type=False
    )
    course_level.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=100), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
        sa.Column("level", course_level, server_default="all_levels"),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("duration_min", sa.Integer(), server_default="60"),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("capacity > 0", name="ck_course_capacity_positive"),
        sa.CheckConstraint("price >= 0", name="ck_course_price_non_negative"),
    )

    booking_status = postgresql.ENUM(
        "pending", "confirmed", "cancelled", "completed", name="bookingstatus", create_type=False
    )
    booking_status.create(op.get_bind(), checkfirst=True)
    payment_status = postgresql.ENUM(
        "pending", "paid", "failed", "refunded", name="paymentstatus", create_type=False
    )
    payment_status.create(op.get_bind(), checkfirst=True)
    booking_source = postgresql.ENUM("checkout", "admin", name="bookingsource", create_type=False)
    booking_source.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE")),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id", ondelete="RESTRICT")),
        sa.Column("slot_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", booking_status, server_default="pending"),
        sa.Column("payment_status", payment_status, server_default="pending"),
        sa.Column("payment_reference", sa.String(length=128)),
        sa.Column("checkout_session_id", sa.String(length=128)),
        sa.Column("amount", sa.Numeric(10, 2)),
        sa.Column("currency", sa.CHAR(length=3), server_default="EUR"),
        sa.Column("source", booking_source, server_default="admin"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_booking_course_slot", "bookings", ["course_id", "slot_at"])
    op.create_index("ix_bookings_checkout_session_id", "bookings", ["checkout_session_id"])
    op.create_index(
        "uq_booking_confirmed_user_course_slot",
        "bookings",
        ["user_id", "course_id", "slot_at"],
        unique=True,
        postgresql_where=sa.text("status = 'confirmed'"),
    )

    event_outcome = postgresql.ENUM(
        "confirmed", "duplicate", "ignored", "course_full", "invalid", name="eventoutcome", create_type=False
    )
    event_outcome.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "payment_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_id", sa.String(length=255), nullable=False, unique=True),
        sa.Column("event_type", sa.String(length=255), nullable=False),
        sa.Column("checkout_session_id", sa.String(length=128)),
        sa.Column("booking_id", sa.Integer()),
        sa.Column("outcome", event_outcome, nullable=False),
        sa.Column("needs_attention", sa.Boolean(), server_default=sa.false()),
        sa.Column("payload", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_payment_events_needs_attention", "payment_events", ["needs_attention"])


def downgrade() -> None:
    op.drop_table("payment_events")
    op.drop_table("bookings")
    op.drop_table("courses")
    op.drop_table("users")
    for name in (
        "eventoutcome",
        "bookingsource",
        "paymentstatus",
        "bookingstatus",
        "courselevel",
        "userrole",
    ):
        postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)
