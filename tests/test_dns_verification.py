"""DNS verification engine: single records, record sets, aggregation."""
from datetime import datetime, timezone

import dns.exception
import dns.resolver
import pytest
from pydantic import ValidationError as SchemaError

from app.core.errors import ExternalError, ValidationError
from app.schemas.deployment import (
    DnsRecord,
    DomainVerificationRecords,
    EmailVerificationRecords,
)
from app.services.dns_verification import (
    METHOD_DNS,
    METHOD_EDGE,
    DnsResolver,
    are_domain_records_verified,
    are_email_records_verified,
    verify_dns_record,
    verify_domain_records,
    verify_email_records,
)
from tests.conftest import FakeEdgeProvider, FakeResolver

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _cname(name, value, verified=False):
    return DnsRecord(name=name, record_type="CNAME", value=value, verified=verified)


def _domain_records():
    return DomainVerificationRecords(custom_hostname_verification=[
        _cname("accounts.acme.io", "accounts.wacht.services"),
        _cname("frontend.acme.io", "frontend.wacht.services"),
    ])


# ── single record ──

def test_verify_dns_record_matches_first_answer():
    resolver = FakeResolver({("accounts.acme.io", "CNAME"): ["nope.example.", "accounts.wacht.services."]})
    assert verify_dns_record(_cname("accounts.acme.io", "accounts.wacht.services"), resolver) is True


def test_verify_dns_record_no_answers_is_false():
    assert verify_dns_record(_cname("accounts.acme.io", "x.example"), FakeResolver()) is False


def test_verify_dns_record_resolver_failure_raises():
    resolver = FakeResolver()
    resolver.failing.add("accounts.acme.io")
    with pytest.raises(ExternalError):
        verify_dns_record(_cname("accounts.acme.io", "x.example"), resolver)


def test_txt_answer_is_unquoted_before_compare():
    record = DnsRecord(name="k._domainkey.acme.io", record_type="TXT", value="k=rsa;p=ABC")
    resolver = FakeResolver({("k._domainkey.acme.io", "TXT"): ['"k=rsa;p=ABC"']})
    assert verify_dns_record(record, resolver) is True


def test_unsupported_record_type_rejected_by_schema():
    with pytest.raises(SchemaError):
        DnsRecord(name="x.acme.io", record_type="SRV", value="x")


def test_expected_fields_are_immutable():
    record = _cname("accounts.acme.io", "accounts.wacht.services")
    with pytest.raises(AttributeError):
        record.value = "evil.example"
    record.mark_attempt(NOW)
    assert record.verification_attempted_at == NOW


# ── domain sets ──

def test_domain_records_prefer_edge_status():
    edge = FakeEdgeProvider()
    edge.active_hostnames = {"accounts.acme.io"}
    resolver = FakeResolver()
    records = _domain_records()

    outcomes = verify_domain_records(records, edge, resolver, now=NOW)

    assert [o.method for o in outcomes] == [METHOD_EDGE, METHOD_EDGE]
    assert records.custom_hostname_verification[0].verified is True
    assert records.custom_hostname_verification[0].last_verified_at == NOW
    assert records.custom_hostname_verification[1].verified is False
    assert records.custom_hostname_verification[1].last_verified_at is None
    assert all(r.verification_attempted_at == NOW for r in records.custom_hostname_verification)
    assert resolver.calls == []


def test_domain_records_fall_back_to_dns_on_provider_error():
    edge = FakeEdgeProvider()
    edge.status_error = True
    resolver = FakeResolver({("frontend.acme.io", "CNAME"): ["frontend.wacht.services."]})
    records = _domain_records()

    outcomes = verify_domain_records(records, edge, resolver, now=NOW)

    assert [o.method for o in outcomes] == [METHOD_DNS, METHOD_DNS]
    assert [r.verified for r in records.custom_hostname_verification] == [False, True]


def test_one_failing_record_does_not_block_siblings():
    resolver = FakeResolver({("frontend.acme.io", "CNAME"): ["frontend.wacht.services"]})
    resolver.failing.add("accounts.acme.io")
    records = _domain_records()

    outcomes = verify_domain_records(records, None, resolver, now=NOW)

    assert outcomes[0].verified is False and "timed out" in outcomes[0].error
    assert outcomes[1].verified is True and outcomes[1].error is None
    assert records.custom_hostname_verification[0].verification_attempted_at == NOW


def test_verified_domain_record_is_never_cleared():
    records = _domain_records()
    records.custom_hostname_verification[0].mark_verified(NOW)

    verify_domain_records(records, None, FakeResolver(), now=NOW)

    assert records.custom_hostname_verification[0].verified is True


# ── email sets ──

def test_email_records_skip_already_verified():
    records = EmailVerificationRecords(
        dkim_records=[DnsRecord(name="pm._domainkey.m.acme.io", record_type="TXT", value="k=rsa", verified=True)],
        return_path_records=[_cname("rp.m.acme.io", "pm.mtasv.net")],
    )
    resolver = FakeResolver({("rp.m.acme.io", "CNAME"): ["pm.mtasv.net."]})

    outcomes = verify_email_records(records, resolver, now=NOW)

    assert resolver.calls == [("rp.m.acme.io", "CNAME")]
    assert len(outcomes) == 1
    assert records.dkim_records[0].verification_attempted_at is None
    assert are_email_records_verified(records)


# ── aggregation ──

def test_empty_sets_are_vacuously_verified():
    assert are_domain_records_verified(DomainVerificationRecords())
    assert are_email_records_verified(EmailVerificationRecords())


def test_single_unverified_record_fails_aggregate():
    records = _domain_records()
    records.custom_hostname_verification[0].mark_verified(NOW)
    assert not are_domain_records_verified(records)
    records.custom_hostname_verification[1].mark_verified(NOW)
    assert are_domain_records_verified(records)


# ── dnspython wrapper ──

def _resolver_raising(monkeypatch, exc):
    resolver = DnsResolver(nameservers=["192.0.2.53"], timeout=1.0)

    def _raise(*args, **kwargs):
        raise exc

    monkeypatch.setattr(resolver._resolver, "resolve", _raise)
    return resolver


def test_nxdomain_and_no_answer_are_empty(monkeypatch):
    assert _resolver_raising(monkeypatch, dns.resolver.NXDOMAIN()).resolve("x.acme.io", "CNAME") == []
    assert _resolver_raising(monkeypatch, dns.resolver.NoAnswer()).resolve("x.acme.io", "CNAME") == []


def test_timeout_is_external_error(monkeypatch):
    resolver = _resolver_raising(monkeypatch, dns.exception.Timeout())
    with pytest.raises(ExternalError) as exc_info:
        resolver.resolve("x.acme.io", "TXT")
    assert exc_info.value.step == "dns_resolve"


def test_all_nameservers_failing_is_external_error(monkeypatch):
    resolver = _resolver_raising(monkeypatch, dns.resolver.NoNameservers())
    with pytest.raises(ExternalError) as exc_info:
        resolver.resolve("x.acme.io", "CNAME")
    assert exc_info.value.step == "dns_resolve"


def test_servfail_is_recorded_as_error_not_as_missing_record(monkeypatch):
    resolver = _resolver_raising(monkeypatch, dns.resolver.NoNameservers())
    records = _domain_records()

    outcomes = verify_domain_records(records, None, resolver, now=NOW)

    assert all(o.verified is False for o in outcomes)
    assert all(o.error and "No nameserver answered" in o.error for o in outcomes)


def test_unknown_type_on_engine():
    record = DnsRecord.model_construct(name="x.acme.io", record_type="SRV", value="x", verified=False)
    with pytest.raises(ValidationError):
        verify_dns_record(record, FakeResolver())
