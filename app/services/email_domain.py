"""
Transactional email provider client (sending domains).

Registers the deployment's mail-from host as a sending identity and turns
the DKIM / return-path tokens it hands back into DNS records.
"""
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from app.config import settings
from app.core.errors import ExternalError
from app.schemas.deployment import DnsRecord, EmailVerificationRecords, RecordType

logger = logging.getLogger("console.email")


class EmailDomain(BaseModel):
    """Sending domain as returned by the provider (PascalCase wire names)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int = Field(alias="ID")
    name: str = Field(alias="Name")
    dkim_verified: bool = Field(default=False, alias="DKIMVerified")
    dkim_host: str = Field(default="", alias="DKIMHost")
    dkim_text_value: str = Field(default="", alias="DKIMTextValue")
    dkim_pending_host: str = Field(default="", alias="DKIMPendingHost")
    dkim_pending_text_value: str = Field(default="", alias="DKIMPendingTextValue")
    return_path_domain: str = Field(default="", alias="ReturnPathDomain")
    return_path_domain_verified: bool = Field(default=False, alias="ReturnPathDomainVerified")
    return_path_domain_cname_value: str = Field(default="", alias="ReturnPathDomainCNAMEValue")


class EmailDomainClient:
    def __init__(
        self,
        account_token: str,
        base_url: str = "https://api.postmarkapp.com",
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/json",
                "X-Postmark-Account-Token": account_token,
            },
        )

    @classmethod
    def from_settings(cls) -> "EmailDomainClient":
        return cls(
            account_token=settings.EMAIL_ACCOUNT_TOKEN,
            base_url=settings.EMAIL_API_BASE_URL,
            timeout=settings.EMAIL_API_TIMEOUT,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Email API %s %s failed: %s", method, path, exc)
            raise ExternalError(f"Email provider request failed: {exc}") from exc

        if response.is_error:
            logger.error("Email API %s %s returned %s: %s", method, path, response.status_code, response.text)
            raise ExternalError(f"Email provider error ({response.status_code}): {response.text}")

        try:
            return response.json()
        except ValueError as exc:
            raise ExternalError("Email provider returned a non-JSON body") from exc

    def create_domain(self, name: str) -> EmailDomain:
        body = self._request(
            "POST",
            "/domains",
            json={"Name": name, "ReturnPathDomain": f"rp.{name}"},
        )
        domain = EmailDomain.model_validate(body)
        logger.info("Created email domain %s (id=%s)", domain.name, domain.id)
        return domain

    def get_domain(self, domain_id: int) -> EmailDomain:
        return EmailDomain.model_validate(self._request("GET", f"/domains/{domain_id}"))

    def delete_domain(self, domain_id: int) -> None:
        self._request("DELETE", f"/domains/{domain_id}")
        logger.info("Deleted email domain %s", domain_id)


def build_email_verification_records(domain: EmailDomain) -> EmailVerificationRecords:
    records = EmailVerificationRecords(email_domain_id=domain.id)

    if domain.dkim_pending_host and domain.dkim_pending_text_value:
        records.dkim_records.append(DnsRecord(
            name=domain.dkim_pending_host,
            record_type=RecordType.TXT,
            value=domain.dkim_pending_text_value,
        ))

    if domain.dkim_host and domain.dkim_text_value:
        records.dkim_records.append(DnsRecord(
            name=domain.dkim_host,
            record_type=RecordType.TXT,
            value=domain.dkim_text_value,
            verified=domain.dkim_verified,
        ))

    if domain.return_path_domain and domain.return_path_domain_cname_value:
        records.return_path_records.append(DnsRecord(
            name=domain.return_path_domain,
            record_type=RecordType.CNAME,
            value=domain.return_path_domain_cname_value,
            verified=domain.return_path_domain_verified,
        ))

    return records
