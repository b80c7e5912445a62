"""Services Layer — orchestrates loan operations over the repository.

Invariants:
    - Mutations are serialized per loan id (services/loan_locks.py)
"""
