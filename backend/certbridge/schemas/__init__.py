"""Pydantic Schemas - response models for the JSON admin routes.

Invariants:
    - Schemas describe API contracts only; the XML protocol never goes through them

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
"""
