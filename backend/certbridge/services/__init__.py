"""Services Layer - issuance pipeline, protocol gateway, and workbook import.

Invariants:
    - Services depend on core/repository_protocols, never on concrete stores
    - No FastAPI imports: routes adapt requests, services do the work
"""
