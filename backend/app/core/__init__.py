"""Core Layer — decoding, domain types, errors, and collaborator contracts.

Invariants:
    - No module in core/ imports from services/, api/, or infrastructure/
    - Decoding functions are pure and deterministic; no IO, no async
"""
