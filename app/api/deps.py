import hmac
from typing import Generator, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import settings
from app.db.session import SessionLocal
from app.services.dns_verification import DnsResolver, get_resolver
from app.services.edge_hostname import EdgeHostnameClient
from app.services.email_domain import EmailDomainClient
from app.services.provisioning import LogoUploader
from app.services.staging_names import Counter, get_counter

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def require_console_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """Bearer guard; open when CONSOLE_API_TOKEN is unset (development only)."""
    expected = settings.CONSOLE_API_TOKEN
    if not expected:
        return
    if credentials is None or not hmac.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing console token",
            headers={"WWW-Authenticate": "Bearer"},
        )


# ── External collaborators (overridden in tests) ──

def get_edge_client() -> Generator:
    client = EdgeHostnameClient.from_settings()
    try:
        yield client
    finally:
        client.close()


def get_email_client() -> Generator:
    client = EmailDomainClient.from_settings()
    try:
        yield client
    finally:
        client.close()


def get_dns_resolver() -> DnsResolver:
    return get_resolver()


def get_staging_counter() -> Counter:
    return get_counter()


def get_logo_uploader() -> Optional[LogoUploader]:
    # CDN upload lives in the asset service; no uploader is wired by default
    return None
