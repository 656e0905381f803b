"""Database Layer - declarative Base and metadata for the record store.

Invariants:
    - Engine and sessions are owned by infrastructure/database.py, never created here
"""
