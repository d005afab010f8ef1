"""initial marketplace schema: users, developers, projects, rotation, billing, cron runs

Revision ID: 001
Revises:
Create Date: 2026-09-01

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("hashed_password", sa.String(length=1024), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_superuser", sa.Boolean(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="client"),
        sa.Column("phone_e164", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"])
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "skills",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(op.f("ix_skills_id"), "skills", ["id"])
    op.create_index(op.f("ix_skills_slug"), "skills", ["slug"], unique=True)

    op.create_table(
        "developer_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("level", sa.String(), nullable=False),
        sa.Column("headline", sa.String(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("admin_approval_status", sa.String(), nullable=False),
        sa.Column("availability_status", sa.String(), nullable=False),
        sa.Column("whatsapp_verified", sa.Boolean(), nullable=False),
        sa.Column("usual_response_time_ms", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f("ix_developer_profiles_id"), "developer_profiles", ["id"])
    op.create_index(op.f("ix_developer_profiles_user_id"), "developer_profiles", ["user_id"], unique=True)
    op.create_index(op.f("ix_developer_profiles_admin_approval_status"), "developer_profiles", ["admin_approval_status"])
    op.create_index(op.f("ix_developer_profiles_availability_status"), "developer_profiles", ["availability_status"])

    op.create_table(
        "developer_skills",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("developer_id", sa.Integer(), sa.ForeignKey("developer_profiles.id"), nullable=False),
        sa.Column("skill_id", sa.Integer(), sa.ForeignKey("skills.id"), nullable=False),
        sa.Column("years", sa.Integer(), nullable=True),
        sa.UniqueConstraint("developer_id", "skill_id", name="uq_developer_skill"),
    )
    op.create_index(op.f("ix_developer_skills_id"), "developer_skills", ["id"])
    op.create_index(op.f("ix_developer_skills_developer_id"), "developer_skills", ["developer_id"])
    op.create_index(op.f("ix_developer_skills_skill_id"), "developer_skills", ["skill_id"])

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("budget", sa.Numeric(12, 2), nullable=True),
        sa.Column("skills_required", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("current_batch_id", sa.Integer(), nullable=True),
        sa.Column("contact_reveal_enabled", sa.Boolean(), nullable=False),
        sa.Column(
            "contact_revealed_developer_id",
            sa.Integer(),
            sa.ForeignKey("developer_profiles.id"),
            nullable=True,
        ),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f("ix_projects_id"), "projects", ["id"])
    op.create_index(op.f("ix_projects_client_id"), "projects", ["client_id"])
    op.create_index(op.f("ix_projects_status"), "projects", ["status"])
    op.create_index(op.f("ix_projects_current_batch_id"), "projects", ["current_batch_id"])

    op.create_table(
        "assignment_batches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("batch_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("is_no_expire", sa.Boolean(), nullable=False),
        sa.Column("selection", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("project_id", "batch_number", name="uq_assignment_batch_number"),
    )
    op.create_index(op.f("ix_assignment_batches_id"), "assignment_batches", ["id"])
    op.create_index(op.f("ix_assignment_batches_project_id"), "assignment_batches", ["project_id"])
    op.create_index(op.f("ix_assignment_batches_status"), "assignment_batches", ["status"])

    op.create_table(
        "assignment_candidates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("batch_id", sa.Integer(), sa.ForeignKey("assignment_batches.id"), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("developer_id", sa.Integer(), sa.ForeignKey("developer_profiles.id"), nullable=False),
        sa.Column("level", sa.String(), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("acceptance_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("response_status", sa.String(), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("invalidated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("usual_response_time_ms_snapshot", sa.Integer(), nullable=True),
        sa.Column("status_text_for_client", sa.String(), nullable=True),
        sa.Column("is_first_accepted", sa.Boolean(), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("client_message", sa.Text(), nullable=True),
        sa.Column("skill_ids", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
    )
    op.create_index(op.f("ix_assignment_candidates_id"), "assignment_candidates", ["id"])
    op.create_index(op.f("ix_assignment_candidates_batch_id"), "assignment_candidates", ["batch_id"])
    op.create_index(op.f("ix_assignment_candidates_project_id"), "assignment_candidates", ["project_id"])
    op.create_index(op.f("ix_assignment_candidates_developer_id"), "assignment_candidates", ["developer_id"])
    op.create_index(op.f("ix_assignment_candidates_response_status"), "assignment_candidates", ["response_status"])
    op.create_index(
        "ix_assignment_candidates_status_deadline",
        "assignment_candidates",
        ["response_status", "acceptance_deadline"],
    )
    op.create_index(
        "uq_assignment_candidates_first_accepted",
        "assignment_candidates",
        ["project_id"],
        unique=True,
        postgresql_where=sa.text("is_first_accepted"),
        sqlite_where=sa.text("is_first_accepted = 1"),
    )

    op.create_table(
        "rotation_cursors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("skill_id", sa.Integer(), sa.ForeignKey("skills.id"), nullable=False),
        sa.Column("level", sa.String(), nullable=False),
        sa.Column("last_developer_ids", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("skill_id", "level", name="uq_rotation_cursor_skill_level"),
    )
    op.create_index(op.f("ix_rotation_cursors_id"), "rotation_cursors", ["id"])
    op.create_index(op.f("ix_rotation_cursors_skill_id"), "rotation_cursors", ["skill_id"])

    op.create_table(
        "contact_grants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("developer_id", sa.Integer(), sa.ForeignKey("developer_profiles.id"), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("allow_email", sa.Boolean(), nullable=False),
        sa.Column("allow_phone", sa.Boolean(), nullable=False),
        sa.Column("allow_whatsapp", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("client_id", "developer_id", "project_id", name="uq_contact_grant"),
    )
    op.create_index(op.f("ix_contact_grants_id"), "contact_grants", ["id"])
    op.create_index(op.f("ix_contact_grants_client_id"), "contact_grants", ["client_id"])
    op.create_index(op.f("ix_contact_grants_developer_id"), "contact_grants", ["developer_id"])
    op.create_index(op.f("ix_contact_grants_project_id"), "contact_grants", ["project_id"])

    op.create_table(
        "packages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("price_usd", sa.Numeric(10, 2), nullable=False),
        sa.Column("connects_per_month", sa.Integer(), nullable=False),
        sa.Column("projects_per_month", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(op.f("ix_packages_id"), "packages", ["id"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("package_id", sa.Integer(), sa.ForeignKey("packages.id"), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(op.f("ix_subscriptions_id"), "subscriptions", ["id"])
    op.create_index(op.f("ix_subscriptions_client_id"), "subscriptions", ["client_id"])
    op.create_index(op.f("ix_subscriptions_status"), "subscriptions", ["status"])

    op.create_table(
        "subscription_usage",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("subscription_id", sa.Integer(), sa.ForeignKey("subscriptions.id"), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("connects_used", sa.Integer(), nullable=False),
        sa.Column("projects_used", sa.Integer(), nullable=False),
        sa.UniqueConstraint("subscription_id", "period_start", name="uq_subscription_usage_period"),
    )
    op.create_index(op.f("ix_subscription_usage_id"), "subscription_usage", ["id"])
    op.create_index(op.f("ix_subscription_usage_subscription_id"), "subscription_usage", ["subscription_id"])

    op.create_table(
        "cron_runs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("job", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f("ix_cron_runs_id"), "cron_runs", ["id"])
    op.create_index(op.f("ix_cron_runs_job"), "cron_runs", ["job"])


def downgrade() -> None:
    op.drop_table("cron_runs")
    op.drop_table("subscription_usage")
    op.drop_table("subscriptions")
    op.drop_table("packages")
    op.drop_table("contact_grants")
    op.drop_table("rotation_cursors")
    op.drop_index("uq_assignment_candidates_first_accepted", table_name="assignment_candidates")
    op.drop_table("assignment_candidates")
    op.drop_table("assignment_batches")
    op.drop_table("projects")
    op.drop_table("developer_skills")
    op.drop_table("developer_profiles")
    op.drop_table("skills")
    op.drop_table("users")
