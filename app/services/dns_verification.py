"""
DNS Verification Engine

Checks the records a customer was asked to publish:
  - per-type matching rules (CNAME / TXT / A / MX)
  - single-record resolution through dnspython
  - domain record sets: edge provider status first, DNS fallback
  - email record sets: DNS only, already-verified records skipped

Record-level failures never escape the set functions; they are logged and
reported back as ``RecordOutcome`` entries so the caller can audit them.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Protocol

import dns.exception
import dns.resolver
import dns.rdatatype

from app.config import settings
from app.core.errors import ExternalError, ValidationError
from app.middleware.metrics import DNS_RECORD_CHECKS
from app.models.types import utcnow
from app.schemas.deployment import (
    DnsRecord,
    DomainVerificationRecords,
    EmailVerificationRecords,
    RecordType,
)

logger = logging.getLogger("console.dns")

METHOD_EDGE = "edge_provider"
METHOD_DNS = "dns"

_SUPPORTED_TYPES = frozenset(t.value for t in RecordType)


# ═══════════════════════════════════════════
#  Matching rules
# ═══════════════════════════════════════════

def _strip_dot(value: str) -> str:
    return value[:-1] if value.endswith(".") else value


def _unquote_once(value: str) -> str:
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1]
    return value


def _match_cname(actual: str, expected: str) -> bool:
    return _strip_dot(actual).lower() == _strip_dot(expected).lower()


def _match_txt(actual: str, expected: str) -> bool:
    return _unquote_once(actual) == expected


def _match_a(actual: str, expected: str) -> bool:
    return actual == expected


def _match_mx(actual: str, expected: str) -> bool:
    # "<priority> <exchange>"; only the exchange is compared
    parts = actual.split()
    if len(parts) < 2:
        return False
    return _strip_dot(parts[1]).lower() == _strip_dot(expected).lower()


_MATCHERS = {
    RecordType.CNAME.value: _match_cname,
    RecordType.TXT.value: _match_txt,
    RecordType.A.value: _match_a,
    RecordType.MX.value: _match_mx,
}


def record_matches(actual: str, expected: str, record_type: str) -> bool:
    """Compare one resolved answer against the expected value for ``record_type``."""
    matcher = _MATCHERS.get(str(record_type).upper())
    if matcher is None:
        raise ValidationError(f"Unsupported DNS record type: {record_type}")
    return matcher(actual, expected)


# ═══════════════════════════════════════════
#  Resolver
# ═══════════════════════════════════════════

class Resolver(Protocol):
    def resolve(self, name: str, record_type: str) -> List[str]: ...


class EdgeStatusChecker(Protocol):
    def check_custom_hostname_status(self, hostname: str) -> bool: ...


def _render_answer(rdata) -> str:
    if rdata.rdtype == dns.rdatatype.TXT:
        # Long TXT values come back split into 255-byte strings
        joined = b"".join(rdata.strings).decode("utf-8", errors="replace")
        return f'"{joined}"'
    return rdata.to_text()


class DnsResolver:
    """Thin wrapper over ``dns.resolver.Resolver`` returning answers as text."""

    def __init__(self, nameservers: Optional[List[str]] = None, timeout: Optional[float] = None) -> None:
        nameservers = settings.dns_nameservers if nameservers is None else nameservers
        timeout = settings.DNS_TIMEOUT if timeout is None else timeout

        self._resolver = dns.resolver.Resolver(configure=not nameservers)
        if nameservers:
            self._resolver.nameservers = nameservers
        self._resolver.timeout = timeout
        self._resolver.lifetime = timeout

    def resolve(self, name: str, record_type: str) -> List[str]:
        try:
            answer = self._resolver.resolve(name, record_type)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return []
        except dns.resolver.NoNameservers as exc:
            # every nameserver failed (SERVFAIL, REFUSED); not the same as an empty answer
            raise ExternalError(f"No nameserver answered {name} ({record_type}): {exc}", step="dns_resolve") from exc
        except dns.exception.Timeout as exc:
            raise ExternalError(f"DNS query timed out for {name} ({record_type})", step="dns_resolve") from exc
        except dns.exception.DNSException as exc:
            raise ExternalError(f"DNS query failed for {name} ({record_type}): {exc}", step="dns_resolve") from exc
        return [_render_answer(rdata) for rdata in answer]


_default_resolver: Optional[DnsResolver] = None


def get_resolver() -> DnsResolver:
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = DnsResolver()
    return _default_resolver


# ═══════════════════════════════════════════
#  Single record
# ═══════════════════════════════════════════

def verify_dns_record(record: DnsRecord, resolver: Optional[Resolver] = None) -> bool:
    """
    Resolve ``record.name`` and return True on the first answer matching
    ``record.value``. An empty answer set is a plain ``False``.

    Raises:
        ValidationError: unsupported record type
        ExternalError: resolver failure (timeout, SERVFAIL, ...)
    """
    record_type = str(record.record_type).upper()
    if record_type not in _SUPPORTED_TYPES:
        raise ValidationError(f"Unsupported DNS record type: {record.record_type}")

    resolver = resolver or get_resolver()
    for answer in resolver.resolve(record.name, record_type):
        if record_matches(answer, record.value, record_type):
            return True
    return False


# ═══════════════════════════════════════════
#  Record sets
# ═══════════════════════════════════════════

@dataclass
class RecordOutcome:
    """Result of checking one record in one round."""

    record_set: str
    record: DnsRecord
    verified: bool
    method: str
    error: Optional[str] = None


def _dns_outcome(record_set: str, record: DnsRecord, resolver: Optional[Resolver]) -> RecordOutcome:
    try:
        verified = verify_dns_record(record, resolver)
        return RecordOutcome(record_set, record, verified, METHOD_DNS)
    except Exception as exc:
        logger.warning("DNS check failed for %s %s: %s", record.record_type, record.name, exc)
        return RecordOutcome(record_set, record, False, METHOD_DNS, error=str(exc))


def _apply(outcome: RecordOutcome, now: datetime) -> RecordOutcome:
    # A record that has verified once is never cleared by a later round
    if outcome.verified and not outcome.record.verified:
        outcome.record.mark_verified(now)
    elif outcome.verified:
        outcome.record.last_verified_at = now
    DNS_RECORD_CHECKS.labels(
        method=outcome.method,
        result="error" if outcome.error else ("pass" if outcome.verified else "fail"),
    ).inc()
    return outcome


def verify_domain_records(
    records: DomainVerificationRecords,
    edge_provider: Optional[EdgeStatusChecker] = None,
    resolver: Optional[Resolver] = None,
    now: Optional[datetime] = None,
) -> List[RecordOutcome]:
    """
    Check every record of both domain sets, mutating the stamps in place.

    The edge provider's hostname status is asked first; when that call fails
    the record falls back to a direct DNS lookup.
    """
    now = now or utcnow()
    outcomes: List[RecordOutcome] = []

    for record_set in ("edge_verification", "custom_hostname_verification"):
        for record in getattr(records, record_set):
            record.mark_attempt(now)

            if edge_provider is None:
                outcomes.append(_apply(_dns_outcome(record_set, record, resolver), now))
                continue

            try:
                active = edge_provider.check_custom_hostname_status(record.name)
                outcome = RecordOutcome(record_set, record, bool(active), METHOD_EDGE)
            except Exception as exc:
                logger.info(
                    "Edge status check failed for %s, falling back to DNS: %s",
                    record.name, exc,
                )
                outcome = _dns_outcome(record_set, record, resolver)
            outcomes.append(_apply(outcome, now))

    return outcomes


def verify_email_records(
    records: EmailVerificationRecords,
    resolver: Optional[Resolver] = None,
    now: Optional[datetime] = None,
) -> List[RecordOutcome]:
    """Check DKIM and return-path records over DNS; verified records are left alone."""
    now = now or utcnow()
    outcomes: List[RecordOutcome] = []

    for record_set in ("dkim_records", "return_path_records"):
        for record in getattr(records, record_set):
            if record.verified:
                continue
            record.mark_attempt(now)
            outcomes.append(_apply(_dns_outcome(record_set, record, resolver), now))

    return outcomes


def _all_verified(records: Iterable[DnsRecord]) -> bool:
    return all(r.verified for r in records)


def are_domain_records_verified(records: DomainVerificationRecords) -> bool:
    return (
        _all_verified(records.edge_verification)
        and _all_verified(records.custom_hostname_verification)
    )


def are_email_records_verified(records: EmailVerificationRecords) -> bool:
    return (
        _all_verified(records.dkim_records)
        and _all_verified(records.return_path_records)
    )
