"""API Layer — FastAPI routes, dependencies, middleware, and error handlers.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - Error responses share one JSON envelope

Design Decisions:
    - Thin routes delegate to core/ decoding and services/ policy
"""
