"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("pass_hash", sa.String(64), nullable=False),
        sa.Column("pass_salt", sa.String(36), nullable=False),
        sa.Column("perms", sa.Integer, nullable=False),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("creation_date", sa.DateTime, nullable=False),
        sa.Column("last_active_date", sa.DateTime, nullable=False),
    )

    op.create_table(
        "emails",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("address", sa.String(50), nullable=False),
        sa.Column("verified", sa.Boolean, nullable=False),
    )
    op.create_index("ix_emails_user_id", "emails", ["user_id"])

    op.create_table(
        "phone_numbers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("number", sa.String(20), nullable=False),
        sa.Column("verified", sa.Boolean, nullable=False),
    )

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("purchase_quantity", sa.Integer, nullable=False),
        sa.Column("cost_per_purchase_unit", sa.Float, nullable=False),
        sa.Column("unit", sa.String(50), nullable=False),
        sa.Column("notes", sa.String(255), nullable=False),
    )

    op.create_table(
        "recipes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("prep_unit", sa.String(50), nullable=False),
        sa.Column("cook_unit", sa.String(50), nullable=False),
        sa.Column("rating", sa.Float, nullable=False),
        sa.Column("prep_time", sa.Float, nullable=False),
        sa.Column("cook_time", sa.Float, nullable=False),
    )

    op.create_table(
        "cook_steps",
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id"), primary_key=True),
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("description", sa.String(255), nullable=False),
    )

    op.create_table(
        "ingredients",
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id"), primary_key=True),
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("inventory_id", sa.String(36), sa.ForeignKey("inventory_items.id"), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("min_quantity", sa.Integer, nullable=False),
        sa.Column("unit", sa.String(50), nullable=False),
        sa.UniqueConstraint("recipe_id", "inventory_id"),
    )

    op.create_table(
        "cooked_goods",
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id"), primary_key=True),
        sa.Column("id", sa.String(36), nullable=False, unique=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
    )


def downgrade() -> None:
    op.drop_table("cooked_goods")
    op.drop_table("ingredients")
    op.drop_table("cook_steps")
    op.drop_table("recipes")
    op.drop_table("inventory_items")
    op.drop_table("phone_numbers")
    op.drop_table("emails")
    op.drop_table("sessions")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
