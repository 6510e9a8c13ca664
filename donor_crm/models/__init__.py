"""ORM Models — SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Organization is the tenant root; every entity is reachable from one organization

Design Decisions:
    - One file per entity (WhatsApp tables grouped) for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from donor_crm.models.organization import Organization, OrganizationIntegration  # noqa: F401
from donor_crm.models.staff import Staff  # noqa: F401
from donor_crm.models.donor import Donor  # noqa: F401
from donor_crm.models.project import Project  # noqa: F401
from donor_crm.models.donation import Donation  # noqa: F401
from donor_crm.models.person_research import PersonResearch  # noqa: F401
from donor_crm.models.whatsapp import (  # noqa: F401
    StaffWhatsAppPhoneNumber, WhatsAppChatMessage, WhatsAppActivityLog,
)
