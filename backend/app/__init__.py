"""Event Grid Gateway Package — webhook ingestion and real-time fan-out.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
