"""Pydantic Schemas — wire envelopes and the normalized event.

Invariants:
    - Schemas validate at the system boundary (publisher bodies, handshake response)
    - Domain types from core/ used for enum fields
"""
