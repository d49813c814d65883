"""Services Layer — validation handshake and dispatch routing.

Invariants:
    - Services talk to collaborators through core/boundary_protocols only
    - Collaborator failures are contained here, never re-raised to routes
"""
