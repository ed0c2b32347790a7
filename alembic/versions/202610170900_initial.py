"""initial schema

Revision ID: 202610170900
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610170900"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(12, 2)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "team",
        sa.Column("email", sa.String(length=255), primary_key=True),
        sa.Column("name_ko", sa.String(length=100), nullable=False),
        sa.Column("name_en", sa.String(length=100)),
        sa.Column("position", sa.String(length=50)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "cash_transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("transaction_date", sa.DateTime(), nullable=False),
        sa.Column(
            "transaction_type",
            sa.Enum("deposit", "withdrawal", name="cashdirection"),
            nullable=False,
        ),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("category", sa.String(length=100)),
        sa.Column("reference_type", sa.String(length=50)),
        sa.Column("reference_id", sa.String(length=64)),
        sa.Column("created_by", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_cash_transactions_amount_positive"),
    )
    op.create_index(
        "ix_cash_transactions_date",
        "cash_transactions",
        ["transaction_date", "created_at"],
    )

    op.create_table(
        "payment_records",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("reservation_id", sa.String(length=64)),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("payment_method", sa.String(length=64)),
        sa.Column("payment_status", sa.String(length=40)),
        sa.Column("note", sa.Text()),
        sa.Column("submit_on", sa.DateTime()),
        sa.Column("submit_by", sa.String(length=255)),
    )
    op.create_index(
        "ix_payment_records_method_submit",
        "payment_records",
        ["payment_method", "submit_on"],
    )

    op.create_table(
        "company_expenses",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("payment_method", sa.String(length=64)),
        sa.Column("description", sa.Text()),
        sa.Column("notes", sa.Text()),
        sa.Column("paid_for", sa.String(length=100)),
        sa.Column("paid_to", sa.String(length=200)),
        sa.Column("submit_on", sa.DateTime()),
        sa.Column("submit_by", sa.String(length=255)),
    )
    op.create_index(
        "ix_company_expenses_method_submit",
        "company_expenses",
        ["payment_method", "submit_on"],
    )

    op.create_table(
        "cash_transaction_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_id", sa.String(length=64), nullable=False),
        sa.Column(
            "source_table",
            sa.Enum(
                "cash_transactions",
                "payment_records",
                "company_expenses",
                name="cashsource",
            ),
            nullable=False,
        ),
        sa.Column(
            "change_type",
            sa.Enum("created", "updated", "deleted", name="changetype"),
            nullable=False,
        ),
        sa.Column("old_values", sa.JSON()),
        sa.Column("new_values", sa.JSON()),
        sa.Column("modified_by", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("modified_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_cash_history_txn_source",
        "cash_transaction_history",
        ["transaction_id", "source_table", "modified_at"],
    )

    op.create_table(
        "pickup_hotels",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("hotel", sa.String(length=200), nullable=False),
        sa.Column("pick_up_location", sa.String(length=200), nullable=False),
        sa.Column("description_ko", sa.Text()),
        sa.Column("description_en", sa.Text()),
        sa.Column("address", sa.String(length=300), nullable=False),
        sa.Column("pin", sa.String(length=100)),
        sa.Column("link", sa.String(length=500)),
        sa.Column("youtube_link", sa.String(length=500)),
        sa.Column("media", sa.JSON()),
        sa.Column("is_active", sa.Boolean()),
        sa.Column("group_number", sa.Numeric(6, 2)),
        *_timestamps(),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("name_ko", sa.String(length=200)),
        sa.Column("category", sa.String(length=100)),
        sa.Column("sub_category", sa.String(length=100)),
        sa.Column("base_price", MONEY, nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        *_timestamps(),
    )

    op.create_table(
        "product_choices",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "product_id", sa.String(length=36), sa.ForeignKey("products.id"), nullable=False
        ),
        sa.Column("choice_group", sa.String(length=100), nullable=False),
        sa.Column("choice_group_ko", sa.String(length=100)),
        sa.Column(
            "choice_type",
            sa.Enum("single", "multiple", "quantity", name="choicetype"),
            nullable=False,
        ),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("product_id", "choice_group", name="uq_choice_product_group"),
    )

    op.create_table(
        "choice_options",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "choice_id",
            sa.String(length=36),
            sa.ForeignKey("product_choices.id"),
            nullable=False,
        ),
        sa.Column("option_key", sa.String(length=100), nullable=False),
        sa.Column("option_name", sa.String(length=200), nullable=False),
        sa.Column("option_name_ko", sa.String(length=200)),
        sa.Column("adult_price", MONEY, nullable=False, server_default="0"),
        sa.Column("child_price", MONEY, nullable=False, server_default="0"),
        sa.Column("infant_price", MONEY, nullable=False, server_default="0"),
        sa.Column("capacity", sa.Integer()),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("choice_id", "option_key", name="uq_option_choice_key"),
    )

    op.create_table(
        "document_templates",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("template_key", sa.String(length=80), nullable=False),
        sa.Column("language", sa.String(length=8), nullable=False, server_default="ko"),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("subject", sa.String(length=300)),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("format", sa.String(length=20), nullable=False, server_default="html"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("channel_id", sa.String(length=64)),
        sa.Column("product_id", sa.String(length=64)),
        *_timestamps(),
    )
    op.create_index(
        "ix_document_templates_key_lang",
        "document_templates",
        ["template_key", "language"],
    )

    op.create_table(
        "payment_methods",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("method", sa.String(length=200), nullable=False),
        sa.Column("display_name", sa.String(length=300)),
        sa.Column("method_type", sa.String(length=20), nullable=False, server_default="card"),
        sa.Column("user_email", sa.String(length=255), sa.ForeignKey("team.email")),
        sa.Column("limit_amount", MONEY),
        sa.Column(
            "status",
            sa.Enum(
                "active", "inactive", "suspended", "expired", name="paymentmethodstatus"
            ),
            nullable=False,
        ),
        sa.Column("card_number_last4", sa.String(length=4)),
        sa.Column("card_type", sa.String(length=40)),
        sa.Column("card_holder_name", sa.String(length=200)),
        sa.Column("expiry_date", sa.Date()),
        sa.Column("monthly_limit", MONEY),
        sa.Column("daily_limit", MONEY),
        sa.Column("current_month_usage", MONEY, nullable=False, server_default="0"),
        sa.Column("current_day_usage", MONEY, nullable=False, server_default="0"),
        sa.Column("assigned_date", sa.Date(), nullable=False),
        sa.Column("last_used_date", sa.Date()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(length=255)),
        sa.Column("updated_by", sa.String(length=255)),
        *_timestamps(),
        sa.CheckConstraint(
            "limit_amount IS NULL OR limit_amount >= 0",
            name="ck_payment_method_limit_positive",
        ),
    )

    op.create_table(
        "attendance_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "employee_email",
            sa.String(length=255),
            sa.ForeignKey("team.email"),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("session_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("check_in_time", sa.DateTime(), nullable=False),
        sa.Column("check_out_time", sa.DateTime()),
        sa.Column("work_hours", sa.Numeric(6, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="present"),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.UniqueConstraint(
            "employee_email",
            "date",
            "session_number",
            name="uq_attendance_employee_date_session",
        ),
    )
    op.create_index(
        "ix_attendance_employee_date",
        "attendance_records",
        ["employee_email", "date"],
    )


def downgrade():
    op.drop_index("ix_attendance_employee_date", table_name="attendance_records")
    op.drop_table("attendance_records")
    op.drop_table("payment_methods")
    op.drop_index("ix_document_templates_key_lang", table_name="document_templates")
    op.drop_table("document_templates")
    op.drop_table("choice_options")
    op.drop_table("product_choices")
    op.drop_table("products")
    op.drop_table("pickup_hotels")
    op.drop_index("ix_cash_history_txn_source", table_name="cash_transaction_history")
    op.drop_table("cash_transaction_history")
    op.drop_index("ix_company_expenses_method_submit", table_name="company_expenses")
    op.drop_table("company_expenses")
    op.drop_index("ix_payment_records_method_submit", table_name="payment_records")
    op.drop_table("payment_records")
    op.drop_index("ix_cash_transactions_date", table_name="cash_transactions")
    op.drop_table("cash_transactions")
    op.drop_table("team")
