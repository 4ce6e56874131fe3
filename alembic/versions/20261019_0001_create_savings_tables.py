"""create master_products, processing_jobs, line_item_matches and savings_reports

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

SEARCH_VECTOR_EXPRESSION = (
    "to_tsvector('english', "
    "coalesce(product_name, '') || ' ' || coalesce(brand, '') || ' ' || "
    "coalesce(model, '') || ' ' || coalesce(sku, '') || ' ' || coalesce(oem_number, ''))"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "master_products",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("sku", sa.String(length=128), nullable=False),
        sa.Column("product_name", sa.Text(), nullable=False),
        sa.Column("brand", sa.String(length=128), nullable=True),
        sa.Column("model", sa.String(length=128), nullable=True),
        sa.Column("category", sa.String(length=64), nullable=True),
        sa.Column("color_type", sa.String(length=32), nullable=True),
        sa.Column("size_category", sa.String(length=32), nullable=True),
        sa.Column("page_yield", sa.Integer(), nullable=True),
        sa.Column("family_series", sa.String(length=128), nullable=True),
        sa.Column("compatibility_group", sa.String(length=128), nullable=True),
        sa.Column("oem_number", sa.String(length=128), nullable=True),
        sa.Column("wholesaler_sku", sa.String(length=128), nullable=True),
        sa.Column("staples_sku", sa.String(length=128), nullable=True),
        sa.Column("depot_sku", sa.String(length=128), nullable=True),
        sa.Column("reference_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("list_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "search_vector",
            postgresql.TSVECTOR(),
            sa.Computed(SEARCH_VECTOR_EXPRESSION, persisted=True),
            nullable=True,
        ),
        sa.Column("embedding", Vector(1536), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_master_products"),
    )
    op.create_index("ix_master_products_sku", "master_products", ["sku"], unique=False)
    op.create_index("ix_master_products_oem_number", "master_products", ["oem_number"], unique=False)
    op.create_index(
        "ix_master_products_family_color",
        "master_products",
        ["family_series", "color_type"],
        unique=False,
    )
    op.create_index(
        "ix_master_products_search_vector",
        "master_products",
        ["search_vector"],
        unique=False,
        postgresql_using="gin",
    )

    op.create_table(
        "processing_jobs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_step", sa.String(length=255), nullable=True),
        sa.Column("current_chunk", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("file_name", sa.String(length=512), nullable=False),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("total_items", sa.Integer(), nullable=True),
        sa.Column("processed_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("header_row_index", sa.Integer(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("report_url", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_processing_jobs"),
    )
    op.create_index("ix_processing_jobs_status", "processing_jobs", ["status"], unique=False)
    op.create_index("ix_processing_jobs_created_at", "processing_jobs", ["created_at"], unique=False)

    op.create_table(
        "line_item_matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("job_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("row_number", sa.Integer(), nullable=False),
        sa.Column("raw_product_name", sa.Text(), nullable=False),
        sa.Column("raw_sku", sa.String(length=255), nullable=True),
        sa.Column("sku_candidates", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("uom", sa.String(length=16), nullable=True),
        sa.Column("extraction_confidence", sa.Float(), nullable=False),
        sa.Column("matched_product_id", sa.String(length=64), nullable=True),
        sa.Column("matched_product", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("match_method", sa.String(length=32), nullable=False),
        sa.Column("match_score", sa.Float(), nullable=False),
        sa.Column("match_attempts", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("price_source", sa.String(length=64), nullable=True),
        sa.Column("resolved_unit_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("current_total", sa.Numeric(12, 2), nullable=True),
        sa.Column("recommendation_type", sa.String(length=32), nullable=True),
        sa.Column("recommendation", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("savings", sa.Numeric(12, 2), nullable=True),
        sa.Column("match_type", sa.String(length=32), nullable=True),
        sa.Column("environmental", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["job_id"],
            ["processing_jobs.id"],
            name="fk_line_item_matches_job_id_processing_jobs",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_line_item_matches"),
        sa.UniqueConstraint("job_id", "row_number", name="uq_line_item_matches_job_row"),
    )
    op.create_index("ix_line_item_matches_job_id", "line_item_matches", ["job_id"], unique=False)
    op.create_index("ix_line_item_matches_match_method", "line_item_matches", ["match_method"], unique=False)

    op.create_table(
        "savings_reports",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("job_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("total_current_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_optimized_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_savings", sa.Numeric(12, 2), nullable=False),
        sa.Column("savings_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("total_items", sa.Integer(), nullable=False),
        sa.Column("matched_items", sa.Integer(), nullable=False),
        sa.Column("items_with_savings", sa.Integer(), nullable=False),
        sa.Column("summary", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("report_url", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["job_id"],
            ["processing_jobs.id"],
            name="fk_savings_reports_job_id_processing_jobs",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_savings_reports"),
        sa.UniqueConstraint("job_id", name="uq_savings_reports_job_id"),
    )


def downgrade() -> None:
    op.drop_table("savings_reports")
    op.drop_index("ix_line_item_matches_match_method", table_name="line_item_matches")
    op.drop_index("ix_line_item_matches_job_id", table_name="line_item_matches")
    op.drop_table("line_item_matches")
    op.drop_index("ix_processing_jobs_created_at", table_name="processing_jobs")
    op.drop_index("ix_processing_jobs_status", table_name="processing_jobs")
    op.drop_table("processing_jobs")
    op.drop_index("ix_master_products_search_vector", table_name="master_products")
    op.drop_index("ix_master_products_family_color", table_name="master_products")
    op.drop_index("ix_master_products_oem_number", table_name="master_products")
    op.drop_index("ix_master_products_sku", table_name="master_products")
    op.drop_table("master_products")
