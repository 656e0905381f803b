"""API Layer - FastAPI routes, dependencies, and error handlers.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - Admin routes answer in JSON; locker routes answer in protocol XML

Design Decisions:
    - Thin routes delegate to services
"""
