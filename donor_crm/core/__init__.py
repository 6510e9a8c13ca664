"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, data/ or db/
    - All functions are pure and deterministic (message_dedup keeps an injectable clock)

Design Decisions:
    - Functional core separated from imperative shell
"""
