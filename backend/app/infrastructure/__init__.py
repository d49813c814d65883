"""Infrastructure Layer — subscriber hub, DevOps session, auth state, logging.

Invariants:
    - Concrete collaborators live here; services see them only as Protocols
    - External call failures mapped to core/errors types

Design Decisions:
    - Module-level singletons initialized in the FastAPI lifespan
"""
