"""
Edge hostname provider client (custom hostnames for SaaS).

Maps a customer-owned hostname onto one of the platform origins at the CDN
edge. The API wraps every payload in ``{success, errors, messages, result}``.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.core.errors import ExternalError
from app.schemas.deployment import DnsRecord, DomainVerificationRecords, RecordType

logger = logging.getLogger("console.edge")


@dataclass
class CustomHostname:
    id: str
    hostname: str
    status: str
    custom_origin_server: Optional[str] = None


def _hostname_from_result(result: Dict[str, Any]) -> CustomHostname:
    return CustomHostname(
        id=str(result["id"]),
        hostname=result.get("hostname", ""),
        status=result.get("status", "pending"),
        custom_origin_server=result.get("custom_origin_server"),
    )


class EdgeHostnameClient:
    """
    Sync client for the edge provider's custom hostname API.

    Any transport error, non-2xx response or ``success: false`` envelope is
    raised as ``ExternalError``. Nothing is retried.
    """

    def __init__(
        self,
        api_token: str,
        zone_id: str,
        base_url: str = "https://api.cloudflare.com/client/v4",
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.zone_id = zone_id
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_token}",
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def from_settings(cls) -> "EdgeHostnameClient":
        return cls(
            api_token=settings.EDGE_API_TOKEN,
            zone_id=settings.EDGE_ZONE_ID,
            base_url=settings.EDGE_API_BASE_URL,
            timeout=settings.EDGE_API_TIMEOUT,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"/zones/{self.zone_id}{path}"
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Edge API %s %s failed: %s", method, url, exc)
            raise ExternalError(f"Edge provider request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error or not data.get("success", False):
            errors = data.get("errors") or []
            detail = ", ".join(
                f"{e.get('code')}: {e.get('message')}" for e in errors if isinstance(e, dict)
            ) or f"HTTP {response.status_code}"
            logger.error("Edge API %s %s rejected: %s", method, url, detail)
            raise ExternalError(f"Edge provider error: {detail}")

        return data.get("result")

    # ── Operations ──

    def create_custom_hostname(self, hostname: str, origin: str) -> CustomHostname:
        result = self._request(
            "POST",
            "/custom_hostnames",
            json={"hostname": hostname, "custom_origin_server": origin},
        )
        if not result:
            raise ExternalError("Edge provider returned success but no result")
        created = _hostname_from_result(result)
        logger.info("Created custom hostname %s (id=%s, status=%s)", hostname, created.id, created.status)
        return created

    def delete_custom_hostname(self, hostname_id: str) -> None:
        self._request("DELETE", f"/custom_hostnames/{hostname_id}")
        logger.info("Deleted custom hostname %s", hostname_id)

    def list_custom_hostnames(self, hostname: str) -> List[CustomHostname]:
        result = self._request("GET", "/custom_hostnames", params={"hostname": hostname})
        return [_hostname_from_result(item) for item in (result or [])]

    def check_custom_hostname_status(self, hostname: str) -> bool:
        """True when the provider reports the hostname as ``active``."""
        match = next((h for h in self.list_custom_hostnames(hostname) if h.hostname == hostname), None)
        if match is None:
            logger.info("Custom hostname %s not registered at the edge", hostname)
            return False

        detail = self._request("GET", f"/custom_hostnames/{match.id}") or {}
        status = detail.get("status")
        logger.debug("Custom hostname %s status: %s", hostname, status)
        return status == "active"


def generate_domain_verification_records(
    frontend_host: str,
    backend_host: str,
    accounts_target: Optional[str] = None,
    frontend_target: Optional[str] = None,
) -> DomainVerificationRecords:
    """CNAME records the customer publishes to route both hostnames through the edge."""
    return DomainVerificationRecords(
        custom_hostname_verification=[
            DnsRecord(
                name=frontend_host,
                record_type=RecordType.CNAME,
                value=accounts_target or settings.EDGE_ACCOUNTS_TARGET,
            ),
            DnsRecord(
                name=backend_host,
                record_type=RecordType.CNAME,
                value=frontend_target or settings.EDGE_FRONTEND_TARGET,
            ),
        ],
    )
