"""WhatsApp Tool Schemas — Anthropic Tool Use format for the donor assistant.

Invariants:
    - Every tool here has exactly one handler in whatsapp_dispatch.py
    - Amounts in inputs and outputs are integer cents
    - Enums mirror core/domain_types.py so Anthropic validates before the handler runs

Design Decisions:
    - Fixed lookups (find/details/history/stats/top) listed first: the model should prefer
      them over query_database and execute_sql
    - execute_sql description states the organization filter rule; the guard enforces it anyway
"""

from donor_crm.core.domain_types import FilterOperation, FlexibleQueryType, QueryType

TOOLS_WHATSAPP = [
    {
        "name": "find_donors_by_name",
        "description": (
            "Finds donors whose first, last, display or full name (or email) contains "
            "the given text. Ordered by number of donations."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "limit": {"type": "integer", "default": 10},
            },
            "required": ["name"],
        },
    },
    {
        "name": "get_donor_details",
        "description": (
            "Returns one donor with contact data, notes, stage, giving totals "
            "and assigned staff."
        ),
        "input_schema": {
            "type": "object",
            "properties": {"donorId": {"type": "integer"}},
            "required": ["donorId"],
        },
    },
    {
        "name": "get_donation_history",
        "description": "Returns a donor's donations, newest first, with project names.",
        "input_schema": {
            "type": "object",
            "properties": {
                "donorId": {"type": "integer"},
                "limit": {"type": "integer", "default": 50},
            },
            "required": ["donorId"],
        },
    },
    {
        "name": "get_donor_statistics",
        "description": "Organization-wide donor and donation totals.",
        "input_schema": {"type": "object", "properties": {}},
    },
    {
        "name": "get_top_donors",
        "description": "Donors with at least one donation, ordered by total given.",
        "input_schema": {
            "type": "object",
            "properties": {"limit": {"type": "integer", "default": 10}},
        },
    },
    {
        "name": "execute_flexible_query",
        "description": (
            "Runs a predefined donation/donor query that needs joins: donations by "
            "project, by date range, per project, a donor's per-project history, or "
            "a multi-criteria donor search."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "queryType": {
                    "type": "string",
                    "enum": [t.value for t in FlexibleQueryType],
                },
                "donorId": {"type": "integer"},
                "donorName": {"type": "string"},
                "projectId": {"type": "integer"},
                "projectName": {"type": "string"},
                "startDate": {"type": "string", "description": "ISO 8601 date"},
                "endDate": {"type": "string", "description": "ISO 8601 date"},
                "minAmount": {"type": "integer"},
                "maxAmount": {"type": "integer"},
                "searchTerm": {"type": "string"},
                "email": {"type": "string"},
                "phone": {"type": "string"},
                "state": {"type": "string"},
                "isCouple": {"type": "boolean"},
                "highPotential": {"type": "boolean"},
                "assignedStaff": {"type": "string"},
                "limit": {"type": "integer", "default": 50},
            },
            "required": ["queryType"],
        },
    },
    {
        "name": "query_database",
        "description": (
            "Structured query over donors, donations, projects or staff with field "
            "filters, sorting and a row limit."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "queryType": {"type": "string", "enum": [t.value for t in QueryType]},
                "filters": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "field": {"type": "string"},
                            "operation": {
                                "type": "string",
                                "enum": [op.value for op in FilterOperation],
                            },
                            "value": {},
                            "values": {"type": "array", "items": {}},
                        },
                        "required": ["field", "operation"],
                    },
                },
                "sortBy": {"type": "string"},
                "sortDirection": {"type": "string", "enum": ["asc", "desc"]},
                "limit": {"type": "integer", "default": 100},
            },
            "required": ["queryType"],
        },
    },
    {
        "name": "get_database_schema",
        "description": "Describes the tables and columns available to execute_sql.",
        "input_schema": {"type": "object", "properties": {}},
    },
    {
        "name": "execute_sql",
        "description": (
            "Runs one SELECT, INSERT or UPDATE statement. Queries on donors, projects, "
            "staff or organizations must filter organization_id; donations must join "
            "donors. DELETE and schema changes are rejected."
        ),
        "input_schema": {
            "type": "object",
            "properties": {"query": {"type": "string"}},
            "required": ["query"],
        },
    },
    {
        "name": "add_donor_note",
        "description": "Appends a note to a donor's record, attributed to the sender.",
        "input_schema": {
            "type": "object",
            "properties": {
                "donorId": {"type": "integer"},
                "content": {"type": "string"},
            },
            "required": ["donorId", "content"],
        },
    },
]

TOOL_NAMES = frozenset(tool["name"] for tool in TOOLS_WHATSAPP)
