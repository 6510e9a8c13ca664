"""Data Access Layer — organization-scoped queries over the ORM models.

Invariants:
    - Every function takes organization_id and never returns rows of another organization
    - Missing rows raise ResourceNotFoundError; cross-organization references raise ForbiddenError

Design Decisions:
    - Module-level async functions taking (db, organization_id, ...): no repository classes
    - Callers own the transaction boundary except where a function documents a commit
"""
