"""Initial schema — organizations, staff, donors, projects, donations, research, WhatsApp.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("website_url", sa.Text, nullable=True),
        sa.Column("website_summary", sa.Text, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("writing_instructions", sa.Text, nullable=True),
        sa.Column("donor_journey", sa.JSON, nullable=False, server_default='{"nodes": [], "edges": []}'),
        sa.Column("memory", sa.JSON, nullable=False, server_default="[]"),
        *_timestamps(),
    )

    op.create_table(
        "organization_integrations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.String(255), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("access_token", sa.Text, nullable=False),
        sa.Column("refresh_token", sa.Text, nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON, nullable=False, server_default="{}"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "staff",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.String(255), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("first_name", sa.String(255), nullable=False),
        sa.Column("last_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("is_real_person", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("is_primary", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("signature", sa.Text, nullable=True),
        sa.Column("writing_instructions", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_staff_organization_id", "staff", ["organization_id"])

    op.create_table(
        "donors",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.String(255), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("first_name", sa.String(255), nullable=False),
        sa.Column("last_name", sa.String(255), nullable=False),
        sa.Column("his_title", sa.String(50), nullable=True),
        sa.Column("his_first_name", sa.String(255), nullable=True),
        sa.Column("his_initial", sa.String(10), nullable=True),
        sa.Column("his_last_name", sa.String(255), nullable=True),
        sa.Column("her_title", sa.String(50), nullable=True),
        sa.Column("her_first_name", sa.String(255), nullable=True),
        sa.Column("her_initial", sa.String(10), nullable=True),
        sa.Column("her_last_name", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(500), nullable=True),
        sa.Column("is_couple", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column("state", sa.String(2), nullable=True),
        sa.Column("gender", sa.String(10), nullable=True),
        sa.Column("notes", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("assigned_to_staff_id", sa.Integer, sa.ForeignKey("staff.id", ondelete="SET NULL"), nullable=True),
        sa.Column("current_stage_name", sa.String(255), nullable=True),
        sa.Column("classification_reasoning", sa.Text, nullable=True),
        sa.Column("predicted_actions", sa.JSON, nullable=True),
        sa.Column("high_potential_donor", sa.Boolean, nullable=False, server_default="false"),
        *_timestamps(),
        sa.UniqueConstraint("email", "organization_id", name="uq_donors_email_org"),
        sa.UniqueConstraint("external_id", "organization_id", name="uq_donors_external_id_org"),
    )
    op.create_index("ix_donors_organization_id", "donors", ["organization_id"])

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.String(255), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("goal", sa.Integer, nullable=True),
        sa.Column("tags", sa.JSON, nullable=False, server_default="[]"),
        *_timestamps(),
    )
    op.create_index("ix_projects_organization_id", "projects", ["organization_id"])

    op.create_table(
        "donations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("donor_id", sa.Integer, sa.ForeignKey("donors.id", ondelete="CASCADE"), nullable=False),
        sa.Column("project_id", sa.Integer, sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        *_timestamps(),
    )
    op.create_index("ix_donations_donor_id", "donations", ["donor_id"])
    op.create_index("ix_donations_project_id", "donations", ["project_id"])

    op.create_table(
        "person_research",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("donor_id", sa.Integer, sa.ForeignKey("donors.id", ondelete="CASCADE"), nullable=False),
        sa.Column("organization_id", sa.String(255), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("research_topic", sa.Text, nullable=False),
        sa.Column("research_data", sa.JSON, nullable=False),
        sa.Column("is_live", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index("ix_person_research_donor_id", "person_research", ["donor_id"])

    op.create_table(
        "staff_whatsapp_phone_numbers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("staff_id", sa.Integer, sa.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=False, unique=True),
        sa.Column("is_allowed", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "whatsapp_chat_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.String(255), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("staff_id", sa.Integer, sa.ForeignKey("staff.id", ondelete="SET NULL"), nullable=True),
        sa.Column("from_phone_number", sa.String(20), nullable=False),
        sa.Column("message_id", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("tool_calls", sa.JSON, nullable=True),
        sa.Column("tool_results", sa.JSON, nullable=True),
        sa.Column("tokens_used", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_whatsapp_chat_history_from_phone_number", "whatsapp_chat_history", ["from_phone_number"],
    )

    op.create_table(
        "whatsapp_activity_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.String(255), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("staff_id", sa.Integer, sa.ForeignKey("staff.id", ondelete="SET NULL"), nullable=True),
        sa.Column("activity_type", sa.String(50), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=False),
        sa.Column("summary", sa.Text, nullable=False),
        sa.Column("data", sa.JSON, nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("whatsapp_activity_log")
    op.drop_index("ix_whatsapp_chat_history_from_phone_number", table_name="whatsapp_chat_history")
    op.drop_table("whatsapp_chat_history")
    op.drop_table("staff_whatsapp_phone_numbers")
    op.drop_index("ix_person_research_donor_id", table_name="person_research")
    op.drop_table("person_research")
    op.drop_index("ix_donations_project_id", table_name="donations")
    op.drop_index("ix_donations_donor_id", table_name="donations")
    op.drop_table("donations")
    op.drop_index("ix_projects_organization_id", table_name="projects")
    op.drop_table("projects")
    op.drop_index("ix_donors_organization_id", table_name="donors")
    op.drop_table("donors")
    op.drop_index("ix_staff_organization_id", table_name="staff")
    op.drop_table("staff")
    op.drop_table("organization_integrations")
    op.drop_table("organizations")
