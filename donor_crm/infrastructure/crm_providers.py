"""CRM Providers — external CRM upload adapters and their registry.

Invariants:
    - Upload capabilities are optional per provider: callers check supports() first
    - Upload methods take raw (unprefixed) external ids and return raw ids in input order
    - Provider HTTP failures raise ExternalServiceError

Design Decisions:
    - Protocol over ABC: providers are structural, the registry only needs name + methods
    - Registry is an explicit dict populated at startup (no plugin discovery)
    - Salesforce upserts: PATCH when an external id is known, POST otherwise
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

import httpx

from donor_crm.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

UPLOAD_DONORS = "upload_donors"
UPLOAD_PROJECTS = "upload_projects"
UPLOAD_DONATIONS = "upload_donations"


@dataclass
class CrmAddress:
    street: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None


@dataclass
class CrmDonor:
    external_id: str
    first_name: str
    last_name: str
    email: str
    display_name: str | None = None
    phone: str | None = None
    address: CrmAddress | None = None
    is_couple: bool = False


@dataclass
class CrmProject:
    external_id: str
    name: str
    active: bool
    description: str | None = None
    goal: int | None = None
    tags: list[str] = field(default_factory=list)


@dataclass
class CrmDonation:
    external_id: str
    donor_external_id: str
    amount: int
    currency: str
    date: datetime
    project_external_id: str | None = None


class CrmProvider(Protocol):
    """Structural contract every CRM adapter satisfies."""
    name: str

    def supports(self, capability: str) -> bool: ...


class SalesforceProvider:
    """Salesforce REST adapter (Contact, Campaign, GiftTransaction sobjects)."""

    name = "salesforce"
    api_version = "v61.0"

    def __init__(self, http: httpx.AsyncClient):
        self._http = http

    def supports(self, capability: str) -> bool:
        return capability in (UPLOAD_DONORS, UPLOAD_PROJECTS, UPLOAD_DONATIONS)

    async def upload_donors(
        self, access_token: str, donors: list[CrmDonor], metadata: dict,
    ) -> list[str]:
        ids = []
        for donor in donors:
            body = {
                "FirstName": donor.first_name,
                "LastName": donor.last_name,
                "Email": donor.email,
                "Phone": donor.phone,
            }
            if donor.address:
                body.update({
                    "MailingStreet": donor.address.street,
                    "MailingCity": donor.address.city,
                    "MailingState": donor.address.state,
                    "MailingPostalCode": donor.address.postal_code,
                    "MailingCountry": donor.address.country,
                })
            ids.append(await self._upsert(
                access_token, metadata, "Contact", donor.external_id, body,
            ))
        return ids

    async def upload_projects(
        self, access_token: str, projects: list[CrmProject], metadata: dict,
    ) -> list[str]:
        ids = []
        for project in projects:
            body = {
                "Name": project.name,
                "Description": project.description,
                "IsActive": project.active,
                "ExpectedRevenue": project.goal / 100 if project.goal else None,
            }
            ids.append(await self._upsert(
                access_token, metadata, "Campaign", project.external_id, body,
            ))
        return ids

    async def upload_donations(
        self, access_token: str, donations: list[CrmDonation], metadata: dict,
    ) -> list[str]:
        ids = []
        for donation in donations:
            body = {
                "DonorId": donation.donor_external_id,
                "OriginalAmount": donation.amount / 100,
                "CurrencyIsoCode": donation.currency,
                "TransactionDate": donation.date.date().isoformat(),
                "CampaignId": donation.project_external_id,
            }
            ids.append(await self._upsert(
                access_token, metadata, "GiftTransaction", donation.external_id, body,
            ))
        return ids

    async def _upsert(
        self, access_token: str, metadata: dict, sobject: str,
        external_id: str, body: dict,
    ) -> str:
        instance_url = (metadata or {}).get("instanceUrl")
        if not instance_url:
            raise ExternalServiceError(self.name, "Instance URL not found in metadata")
        base = f"{instance_url}/services/data/{self.api_version}/sobjects/{sobject}"
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            if external_id:
                response = await self._http.patch(
                    f"{base}/{external_id}", json=body, headers=headers,
                )
            else:
                response = await self._http.post(base, json=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                self.name, f"{sobject} upsert returned HTTP {e.response.status_code}",
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError(self.name, str(e))
        if external_id:
            return external_id
        return response.json()["id"]


class CrmProviderRegistry:
    """Provider lookup by name."""

    def __init__(self) -> None:
        self._providers: dict[str, CrmProvider] = {}

    def register(self, provider: CrmProvider) -> None:
        self._providers[provider.name] = provider
        logger.info(f"Registered CRM provider: {provider.name}")

    def get(self, name: str) -> CrmProvider:
        provider = self._providers.get(name)
        if provider is None:
            raise ExternalServiceError("crm", f"CRM provider not found: {name}")
        return provider


def build_default_registry(http: httpx.AsyncClient) -> CrmProviderRegistry:
    registry = CrmProviderRegistry()
    registry.register(SalesforceProvider(http))
    return registry
