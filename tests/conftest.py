"""Shared fixtures."""

from __future__ import annotations

import pytest
from doubles import col, pk
from schemagraph_core.providers import ForeignKeyInfo, InMemorySchemaProvider, TableDef
from schemagraph_core.settings import Settings

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults, isolated from the environment's OTEL flags."""
    return Settings(otel_enabled=False)


@pytest.fixture
def shop_tables() -> list[TableDef]:
    """users, orders, products and order_items with declared foreign keys."""
    return [
        TableDef(
            name="users",
            columns=[pk(), col("email", "VARCHAR(255)", nullable=False, is_unique=True)],
        ),
        TableDef(
            name="orders",
            columns=[pk(), col("user_id", nullable=False), col("total", "NUMERIC")],
            foreign_keys=[
                ForeignKeyInfo(
                    column="user_id",
                    to_table="users",
                    to_column="id",
                    constraint_name="fk_orders_user",
                    on_delete="CASCADE",
                )
            ],
        ),
        TableDef(name="products", columns=[pk(), col("name", "VARCHAR(100)")]),
        TableDef(
            name="order_items",
            columns=[col("order_id"), col("product_id"), col("quantity")],
            foreign_keys=[
                ForeignKeyInfo(column="order_id", to_table="orders", to_column="id"),
                ForeignKeyInfo(column="product_id", to_table="products", to_column="id"),
            ],
        ),
    ]


@pytest.fixture
def shop_provider(shop_tables: list[TableDef]) -> InMemorySchemaProvider:
    """In-memory provider over the shop tables."""
    return InMemorySchemaProvider(shop_tables)
