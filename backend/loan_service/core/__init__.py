"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - The lifecycle graph and loan aggregate are deterministic given their inputs
"""
