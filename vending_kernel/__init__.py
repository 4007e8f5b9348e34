"""
Vending Kernel

Persistence, logging and shared domain helpers for the vending sales
ingestion and cash reconciliation system:
- ORM models for machines, collections, sales orders and archived files
- Structured JSON logging with request-scoped context
- Business-day date boundaries and monetary rounding
- Read-only selectors for sales rollups
"""

__version__ = "0.1.0"
