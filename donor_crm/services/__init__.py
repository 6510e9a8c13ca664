"""Services Layer — query engines, WhatsApp tools, CRM sync and LLM-backed features.

Invariants:
    - Services receive an AsyncSession and an organization_id; they never open sessions
    - Tool dispatch uses explicit dict mapping (no auto-discovery)

Design Decisions:
    - One module per concern for locality
"""
