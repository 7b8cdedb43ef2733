"""initial schema

Revision ID: 5c1e0f3a9b27
Revises:
Create Date: 2026-10-12
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5c1e0f3a9b27"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(12, 2)
PCT = sa.Numeric(6, 2)


def _base_columns():
    return [
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _configured_item_columns(required_dims: bool):
    return [
        sa.Column("door_style_id", sa.String(36), sa.ForeignKey("door_styles.id"), nullable=True),
        sa.Column("color_id", sa.String(36), sa.ForeignKey("colors.id"), nullable=True),
        sa.Column("finish_id", sa.String(36), sa.ForeignKey("finishes.id"), nullable=True),
        sa.Column("width_mm", sa.Integer, nullable=not required_dims),
        sa.Column("height_mm", sa.Integer, nullable=not required_dims),
        sa.Column("depth_mm", sa.Integer, nullable=not required_dims),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("unit_price", MONEY, nullable=False, server_default="0"),
        sa.Column("total_price", MONEY, nullable=False, server_default="0"),
        sa.Column("configuration", sa.JSON, nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""

    # ---- accounts ----
    op.create_table(
        "users",
        *_base_columns(),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("full_name", sa.String(200)),
        sa.Column("phone", sa.String(50)),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="customer"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "addresses",
        *_base_columns(),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="shipping"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(50)),
        sa.Column("line1", sa.String(300), nullable=False),
        sa.Column("line2", sa.String(300)),
        sa.Column("suburb", sa.String(120), nullable=False),
        sa.Column("state", sa.String(10), nullable=False),
        sa.Column("postcode", sa.String(4), nullable=False),
        sa.Column("country", sa.String(2), nullable=False, server_default="AU"),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_addresses_user_id", "addresses", ["user_id"])

    # ---- catalog ----
    op.create_table(
        "cabinet_types",
        *_base_columns(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("short_description", sa.Text),
        sa.Column("base_price", MONEY),
        sa.Column("door_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("drawer_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("default_width_mm", sa.Integer, nullable=False),
        sa.Column("default_height_mm", sa.Integer, nullable=False),
        sa.Column("default_depth_mm", sa.Integer, nullable=False),
        sa.Column("min_width_mm", sa.Integer),
        sa.Column("max_width_mm", sa.Integer),
        sa.Column("min_height_mm", sa.Integer),
        sa.Column("max_height_mm", sa.Integer),
        sa.Column("min_depth_mm", sa.Integer),
        sa.Column("max_depth_mm", sa.Integer),
        sa.Column("left_side_width_mm", sa.Integer),
        sa.Column("right_side_width_mm", sa.Integer),
        sa.Column("left_side_depth_mm", sa.Integer),
        sa.Column("right_side_depth_mm", sa.Integer),
        sa.Column("material_rate_per_sqm", MONEY),
        sa.Column("door_rate_per_sqm", MONEY),
        sa.Column("price_method", sa.String(20), nullable=False, server_default="area"),
        sa.Column("assembly_available", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("display_order", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("ix_cabinet_types_category", "cabinet_types", ["category"])

    op.create_table(
        "cabinet_parts",
        *_base_columns(),
        sa.Column(
            "cabinet_type_id",
            sa.String(36),
            sa.ForeignKey("cabinet_types.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("part_name", sa.String(120), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("cost_formula", sa.String(500)),
        sa.Column("is_door", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_hardware", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_cabinet_parts_cabinet_type_id", "cabinet_parts", ["cabinet_type_id"])

    op.create_table(
        "door_styles",
        *_base_columns(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("base_rate_per_sqm", MONEY, nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "colors",
        *_base_columns(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("hex_code", sa.String(7)),
        sa.Column("door_style_id", sa.String(36), sa.ForeignKey("door_styles.id", ondelete="SET NULL")),
        sa.Column("surcharge_rate_per_sqm", MONEY, nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "finishes",
        *_base_columns(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("finish_type", sa.String(64), nullable=False, server_default="standard"),
        sa.Column("door_style_id", sa.String(36), sa.ForeignKey("door_styles.id", ondelete="SET NULL")),
        sa.Column("rate_per_sqm", MONEY, nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "production_options",
        *_base_columns(),
        sa.Column(
            "cabinet_type_id",
            sa.String(36),
            sa.ForeignKey("cabinet_types.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("additional_cost", MONEY, nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_production_options_cabinet_type_id", "production_options", ["cabinet_type_id"])

    op.create_table(
        "global_settings",
        *_base_columns(),
        sa.Column("setting_key", sa.String(100), nullable=False, unique=True),
        sa.Column("setting_value", sa.String(200), nullable=False),
        sa.Column("description", sa.Text),
    )

    # ---- carts ----
    op.create_table(
        "carts",
        *_base_columns(),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False, server_default="My Cart"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("is_primary", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("source", sa.String(32), nullable=False, server_default="web"),
        sa.Column("total_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("notes", sa.Text),
        sa.Column("converted_quote_id", sa.String(36)),
        sa.Column("converted_order_id", sa.String(36)),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_carts_user_id", "carts", ["user_id"])
    op.create_index("ix_carts_status", "carts", ["status"])

    op.create_table(
        "cart_items",
        *_base_columns(),
        sa.Column("cart_id", sa.String(36), sa.ForeignKey("carts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("cabinet_type_id", sa.String(36), sa.ForeignKey("cabinet_types.id"), nullable=False),
        *_configured_item_columns(required_dims=True),
        sa.Column("notes", sa.Text),
        sa.Column("price_override", MONEY),
        sa.Column("override_reason", sa.Text),
    )
    op.create_index("ix_cart_items_cart_id", "cart_items", ["cart_id"])

    # ---- quotes ----
    op.create_table(
        "quotes",
        *_base_columns(),
        sa.Column("quote_number", sa.String(32), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("customer_name", sa.String(200), nullable=False),
        sa.Column("customer_email", sa.String(320), nullable=False),
        sa.Column("customer_phone", sa.String(50)),
        sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
        sa.Column("version_number", sa.Integer, nullable=False, server_default="1"),
        sa.Column("subtotal", MONEY, nullable=False, server_default="0"),
        sa.Column("tax_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("total_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("valid_until", sa.Date),
        sa.Column("sent_at", sa.DateTime(timezone=True)),
        sa.Column("viewed_at", sa.DateTime(timezone=True)),
        sa.Column("accepted_at", sa.DateTime(timezone=True)),
        sa.Column("rejected_at", sa.DateTime(timezone=True)),
        sa.Column("rejection_reason", sa.Text),
        sa.Column("converted_order_id", sa.String(36)),
        sa.Column("source_cart_id", sa.String(36)),
        sa.Column("notes", sa.Text),
        sa.Column("pdf_url", sa.String(1024)),
    )
    op.create_index("ix_quotes_quote_number", "quotes", ["quote_number"], unique=True)
    op.create_index("ix_quotes_user_id", "quotes", ["user_id"])
    op.create_index("ix_quotes_status", "quotes", ["status"])

    op.create_table(
        "quote_items",
        *_base_columns(),
        sa.Column("quote_id", sa.String(36), sa.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("line_number", sa.Integer, nullable=False, server_default="1"),
        sa.Column("item_name", sa.String(200), nullable=False),
        sa.Column("job_reference", sa.String(120)),
        sa.Column("cabinet_type_id", sa.String(36), sa.ForeignKey("cabinet_types.id")),
        *_configured_item_columns(required_dims=False),
        sa.Column("notes", sa.Text),
    )
    op.create_index("ix_quote_items_quote_id", "quote_items", ["quote_id"])

    op.create_table(
        "quote_versions",
        *_base_columns(),
        sa.Column("quote_id", sa.String(36), sa.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version_number", sa.Integer, nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("snapshot", sa.JSON, nullable=False),
        sa.Column("changes_requested", sa.Text),
        sa.Column("created_by", sa.String(64)),
    )
    op.create_index("ix_quote_versions_quote_id", "quote_versions", ["quote_id"])

    # ---- orders ----
    op.create_table(
        "orders",
        *_base_columns(),
        sa.Column("order_number", sa.String(32), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("quote_id", sa.String(36), sa.ForeignKey("quotes.id")),
        sa.Column("cart_id", sa.String(36)),
        sa.Column("customer_name", sa.String(200)),
        sa.Column("customer_email", sa.String(320)),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="unpaid"),
        sa.Column("production_status", sa.String(64)),
        sa.Column("production_notes", sa.Text),
        sa.Column("drawings_status", sa.String(32)),
        sa.Column("payment_option", sa.String(16), nullable=False, server_default="deposit"),
        sa.Column("subtotal", MONEY, nullable=False, server_default="0"),
        sa.Column("shipping_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("tax_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("total_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("shipping_address", sa.JSON),
        sa.Column("billing_address", sa.JSON),
        sa.Column("notes", sa.Text),
    )
    op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_status", "orders", ["status"])

    op.create_table(
        "order_items",
        *_base_columns(),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_name", sa.String(200)),
        sa.Column("cabinet_type_id", sa.String(36), sa.ForeignKey("cabinet_types.id")),
        *_configured_item_columns(required_dims=False),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    op.create_table(
        "payment_schedules",
        *_base_columns(),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("schedule_type", sa.String(16), nullable=False),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("percentage", PCT, nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="locked"),
        sa.Column("trigger_event", sa.String(64)),
        sa.Column("unlocked_at", sa.DateTime(timezone=True)),
        sa.Column("due_date", sa.Date),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("payment_reference", sa.String(120)),
    )
    op.create_index("ix_payment_schedules_order_id", "payment_schedules", ["order_id"])

    op.create_table(
        "invoices",
        *_base_columns(),
        sa.Column("invoice_number", sa.String(32), nullable=False),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "payment_schedule_id",
            sa.String(36),
            sa.ForeignKey("payment_schedules.id", ondelete="SET NULL"),
        ),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("subtotal", MONEY, nullable=False, server_default="0"),
        sa.Column("tax_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("total_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("issued_on", sa.Date, nullable=False),
        sa.Column("due_date", sa.Date),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("pdf_url", sa.String(1024)),
    )
    op.create_index("ix_invoices_invoice_number", "invoices", ["invoice_number"], unique=True)
    op.create_index("ix_invoices_order_id", "invoices", ["order_id"])

    op.create_table(
        "invoice_lines",
        *_base_columns(),
        sa.Column("invoice_id", sa.String(36), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
        sa.Column("line_number", sa.Integer, nullable=False),
        sa.Column("description", sa.String(300), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("amount_ex_gst", MONEY, nullable=False),
        sa.Column("gst_amount", MONEY, nullable=False),
        sa.Column("amount_inc_gst", MONEY, nullable=False),
    )
    op.create_index("ix_invoice_lines_invoice_id", "invoice_lines", ["invoice_id"])

    op.create_table(
        "payments",
        *_base_columns(),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "payment_schedule_id",
            sa.String(36),
            sa.ForeignKey("payment_schedules.id", ondelete="SET NULL"),
        ),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("method", sa.String(32), nullable=False, server_default="manual"),
        sa.Column("external_id", sa.String(120)),
        sa.Column("status", sa.String(16), nullable=False, server_default="completed"),
    )
    op.create_index("ix_payments_order_id", "payments", ["order_id"])

    # ---- shipping & assembly ----
    op.create_table(
        "assembly_surcharge_zones",
        *_base_columns(),
        sa.Column("zone_name", sa.String(200), nullable=False),
        sa.Column("center_latitude", sa.Float, nullable=False),
        sa.Column("center_longitude", sa.Float, nullable=False),
        sa.Column("radius_km", sa.Float, nullable=False),
        sa.Column("carcass_surcharge_pct", PCT, nullable=False, server_default="0"),
        sa.Column("doors_surcharge_pct", PCT, nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("affected_postcodes_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_applied_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "postcode_zones",
        *_base_columns(),
        sa.Column("postcode", sa.String(4), nullable=False),
        sa.Column("suburb", sa.String(120)),
        sa.Column("state", sa.String(10), nullable=False),
        sa.Column("zone", sa.String(32), nullable=False, server_default="METRO"),
        sa.Column("metro", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("remote", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("delivery_eligible", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("lead_time_days", sa.Integer),
        sa.Column("latitude", sa.Float),
        sa.Column("longitude", sa.Float),
        sa.Column("assembly_eligible", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("assembly_carcass_base", MONEY),
        sa.Column("assembly_doors_base", MONEY),
        sa.Column("assembly_carcass_surcharge_pct", PCT, nullable=False, server_default="0"),
        sa.Column("assembly_doors_surcharge_pct", PCT, nullable=False, server_default="0"),
        sa.Column("assignment_method", sa.String(16)),
        sa.Column(
            "assigned_zone_id",
            sa.String(36),
            sa.ForeignKey("assembly_surcharge_zones.id", ondelete="SET NULL"),
        ),
        sa.Column("last_assignment_date", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_postcode_zones_postcode", "postcode_zones", ["postcode"], unique=True)

    op.create_table(
        "rate_cards",
        *_base_columns(),
        sa.Column("carrier", sa.String(120), nullable=False),
        sa.Column("service_name", sa.String(120), nullable=False),
        sa.Column("zone_from", sa.String(32), nullable=False),
        sa.Column("zone_to", sa.String(32), nullable=False),
        sa.Column("base_price", MONEY, nullable=False, server_default="0"),
        sa.Column("per_kg", MONEY, nullable=False, server_default="0"),
        sa.Column("per_cubic_m", MONEY, nullable=False, server_default="0"),
        sa.Column("minimum_charge", MONEY, nullable=False, server_default="0"),
        sa.Column("fuel_levy_pct", PCT, nullable=False, server_default="0"),
        sa.Column("residential_surcharge", MONEY, nullable=False, server_default="0"),
        sa.Column("tail_lift_fee", MONEY, nullable=False, server_default="0"),
        sa.Column("effective_from", sa.Date),
        sa.Column("effective_to", sa.Date),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_rate_cards_zone_from", "rate_cards", ["zone_from"])
    op.create_index("ix_rate_cards_zone_to", "rate_cards", ["zone_to"])

    # ---- files & messages ----
    op.create_table(
        "files",
        *_base_columns(),
        sa.Column("owner_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("mime_type", sa.String(120), nullable=False),
        sa.Column("size_bytes", sa.Integer, nullable=False),
        sa.Column("sha256", sa.String(64), nullable=False),
        sa.Column("storage_key", sa.String(512), nullable=False),
        sa.Column("url", sa.String(1024), nullable=False),
    )
    op.create_index("ix_files_owner_id", "files", ["owner_id"])

    op.create_table(
        "file_attachments",
        *_base_columns(),
        sa.Column("file_id", sa.String(36), sa.ForeignKey("files.id", ondelete="CASCADE"), nullable=False),
        sa.Column("scope", sa.String(32), nullable=False),
        sa.Column("scope_id", sa.String(36), nullable=False),
        sa.Column("attached_by", sa.String(36)),
        sa.UniqueConstraint("file_id", "scope", "scope_id", name="uq_attachment_scope"),
    )
    op.create_index("ix_file_attachments_file_id", "file_attachments", ["file_id"])
    op.create_index("ix_file_attachments_scope_id", "file_attachments", ["scope_id"])

    op.create_table(
        "messages",
        *_base_columns(),
        sa.Column("scope", sa.String(32), nullable=False),
        sa.Column("scope_id", sa.String(36), nullable=False),
        sa.Column("author_id", sa.String(36)),
        sa.Column("message_type", sa.String(16), nullable=False, server_default="customer"),
        sa.Column("message_text", sa.Text, nullable=False),
        sa.Column("file_ids", sa.JSON, nullable=False),
        sa.Column("read_by_customer", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("read_by_admin", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_messages_scope_id", "messages", ["scope_id"])


def downgrade() -> None:
    """Downgrade schema."""

    for table in (
        "messages",
        "file_attachments",
        "files",
        "rate_cards",
        "postcode_zones",
        "assembly_surcharge_zones",
        "payments",
        "invoice_lines",
        "invoices",
        "payment_schedules",
        "order_items",
        "orders",
        "quote_versions",
        "quote_items",
        "quotes",
        "cart_items",
        "carts",
        "global_settings",
        "production_options",
        "finishes",
        "colors",
        "door_styles",
        "cabinet_parts",
        "cabinet_types",
        "addresses",
        "users",
    ):
        op.drop_table(table)
