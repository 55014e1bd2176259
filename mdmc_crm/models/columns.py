"""
Column helpers shared by the table models.
"""
from sqlalchemy import Column, JSON
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON on other backends (SQLite in tests)
JSONVariant = JSON().with_variant(JSONB(), "postgresql")


def json_column(**kwargs) -> Column:
    """A fresh JSON column; Column objects cannot be shared between fields."""
    kwargs.setdefault("nullable", False)
    return Column(JSONVariant, **kwargs)
