"""Referrer (parrain) subscription pricing: reduction calculator, schema migration, modal content migration."""

__version__ = "2.0.0"
