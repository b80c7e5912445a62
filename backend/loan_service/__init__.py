"""Loan Service — loan lifecycle tracking from proposal to disbursement.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
