"""Initial schema: users, interview records, ICPs, campaigns, companies, leads.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa

campaign_status = sa.Enum("draft", "active", "paused", "completed", name="campaign_status")
lead_source = sa.Enum("apollo", "linkedin", "manual", name="lead_source")


def upgrade() -> None:
    # ── Accounts ─────────────────────────────────────────────

    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(150), nullable=False),
        sa.Column("hashed_password", sa.String(255)),
        sa.Column("reset_token", sa.String(255)),
        sa.Column("otp_code", sa.String(10)),
        sa.Column("otp_expires_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # ── Onboarding output ────────────────────────────────────

    op.create_table(
        "records",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("transcript_text", sa.Text(), nullable=False),
        sa.Column("audio_url", sa.String(500)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_records_user_id", "records", ["user_id"])

    op.create_table(
        "icps",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("company_industry", sa.String(255), nullable=False),
        sa.Column("company_size", sa.String(100), nullable=False),
        sa.Column("target_role", sa.String(255), nullable=False),
        sa.Column("pain_points", sa.JSON(), nullable=False),
        sa.Column("values", sa.JSON(), nullable=False),
        sa.Column("goals", sa.JSON(), nullable=False),
        sa.Column("generated_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_icps_user_id", "icps", ["user_id"])

    # ── Outreach ─────────────────────────────────────────────

    op.create_table(
        "campaigns",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("campaign_name", sa.String(255), nullable=False),
        sa.Column("linkedin_email", sa.String(255), nullable=False),
        sa.Column("linkedin_password", sa.String(255), nullable=False),
        sa.Column("heyreach_campaign_id", sa.String(255)),
        sa.Column("status", campaign_status, nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_campaigns_user_id", "campaigns", ["user_id"])

    op.create_table(
        "companies",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("industry", sa.String(255)),
        sa.Column("size", sa.String(120)),
        sa.Column("linkedin_url", sa.String(500)),
        sa.Column("country", sa.String(120)),
        sa.Column("city", sa.String(120)),
        sa.Column("raw_data", sa.JSON(), nullable=False),
        sa.Column("last_refreshed_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_companies_user_id", "companies", ["user_id"])

    op.create_table(
        "leads",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("company_id", sa.BigInteger(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("source", lead_source, nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("linkedin_url", sa.String(500)),
        sa.Column("phone", sa.String(100)),
        sa.Column("country", sa.String(120)),
        sa.Column("city", sa.String(120)),
        sa.Column("raw_data", sa.JSON(), nullable=False),
        sa.Column("last_refreshed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_leads_user_id", "leads", ["user_id"])
    op.create_index("ix_leads_company_id", "leads", ["company_id"])


def downgrade() -> None:
    op.drop_table("leads")
    op.drop_table("companies")
    op.drop_table("campaigns")
    op.drop_table("icps")
    op.drop_table("records")
    op.drop_table("users")
    lead_source.drop(op.get_bind(), checkfirst=True)
    campaign_status.drop(op.get_bind(), checkfirst=True)
