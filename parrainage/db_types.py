"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from sqlalchemy import JSON, BigInteger, Integer, Numeric

# Use JSON instead of JSONB for cross-database compatibility
# JSONB is PostgreSQL-specific, JSON works with both SQLite and PostgreSQL
JSONType = JSON

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")

# Monetary amounts: DECIMAL(10,2)
MoneyType = Numeric(10, 2, asdecimal=True)

# Percentages: DECIMAL(5,2)
PercentType = Numeric(5, 2, asdecimal=True)
