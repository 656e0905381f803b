"""Infrastructure Layer - database, object store, partner client, and logging.

Invariants:
    - All external calls wrapped with retry/timeout/error mapping
    - Failures surface as certbridge errors (core/errors.py), never raw driver exceptions

Design Decisions:
    - Resilient wrappers over raw clients
"""
