"""Infrastructure Layer — database access, persistence adapters, and logging.

Invariants:
    - SQLAlchemy errors never escape as raw exceptions (mapped to DatabaseError)
"""
