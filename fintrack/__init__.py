"""
fintrack - Source Package

A small multi-tenant finance-tracking backend. Each user owns a
spreadsheet of transactions; the backend authenticates against a
central registry and serves listings and metrics from that sheet.

DESIGN PRINCIPLES:
1. Parsing never fails - bad cells become zero/false/unknown
2. Reads are lock-free, writes are serialized per tenant
3. Caches are disposable
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "fintrack Team"
