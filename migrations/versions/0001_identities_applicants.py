"""Create identities and applicants tables"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_identities_applicants"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "identities",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=True),
        sa.Column("provider", sa.String(length=20), nullable=False, server_default="password"),
        sa.Column("provider_subject", sa.String(length=255), nullable=True),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_active_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("provider IN ('password', 'google')", name="ck_identities_provider"),
        sa.UniqueConstraint("provider", "provider_subject", name="uq_identities_provider_subject"),
    )
    op.create_index("ix_identities_email", "identities", ["email"], unique=True)

    op.create_table(
        "applicants",
        sa.Column(
            "uid",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("identities.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="student"),
        sa.Column("application_status", sa.String(length=20), nullable=False, server_default="incomplete"),
        sa.Column("personal_info", postgresql.JSONB(), nullable=True),
        sa.Column("academic_info", postgresql.JSONB(), nullable=True),
        sa.Column("documents", postgresql.JSONB(), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("state", sa.String(length=100), nullable=True),
        sa.Column("zip_code", sa.String(length=10), nullable=True),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("role IN ('student', 'admin')", name="ck_applicants_role"),
        sa.CheckConstraint(
            "application_status IN ('incomplete', 'submitted', 'under_review', 'approved', 'rejected')",
            name="ck_applicants_status",
        ),
        sa.CheckConstraint(
            "application_status = 'incomplete' OR submitted_at IS NOT NULL",
            name="ck_applicants_submitted_at",
        ),
    )
    op.create_index(
        "ix_applicants_status_submitted_at",
        "applicants",
        ["application_status", "submitted_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_applicants_status_submitted_at", table_name="applicants")
    op.drop_table("applicants")
    op.drop_index("ix_identities_email", table_name="identities")
    op.drop_table("identities")
