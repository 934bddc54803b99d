"""Verification poller: convergence, monotonic status, audit trail."""
import pytest

from app.core.errors import NotFoundError
from app.crud import crud_deployment
from app.models.deployment import DnsVerificationEvent
from app.schemas.deployment import DeploymentPatch, VerificationStatus
from app.services.provisioning import create_production_deployment, create_staging_deployment
from app.services.verification import verify_deployment_dns_records, verify_pending_deployments
from tests.conftest import FakeResolver


@pytest.fixture
def deployment(db, project, edge, email):
    return create_production_deployment(db, project.id, "acme.io", ["email"], edge=edge, email=email)


def _expected_answers(deployment):
    """Correct resolver answers for every record the deployment asks for."""
    answers = {}
    domain = deployment.domain_verification_records
    mail = deployment.email_verification_records
    for record in domain["custom_hostname_verification"] + mail["return_path_records"]:
        answers[(record["name"], "CNAME")] = [record["value"] + "."]
    for record in mail["dkim_records"]:
        answers[(record["name"], "TXT")] = [f'"{record["value"]}"']
    return answers


def _verified_flags(deployment):
    domain = deployment.domain_verification_records
    mail = deployment.email_verification_records
    records = (
        domain["custom_hostname_verification"]
        + mail["dkim_records"]
        + mail["return_path_records"]
    )
    return [r["verified"] for r in records]


def test_status_converges_monotonically(db, deployment):
    resolver = FakeResolver()
    deployment_id = deployment.id
    assert deployment.verification_status == "pending"

    # round 1: nothing published yet
    d = verify_deployment_dns_records(db, deployment_id, resolver=resolver)
    assert d.verification_status == "in_progress"
    assert _verified_flags(d) == [False, False, False, False]

    # round 2: only the accounts CNAME and DKIM are visible
    full = _expected_answers(d)
    resolver.answers = {k: v for k, v in full.items() if k[0].startswith("accounts.") or k[1] == "TXT"}
    d = verify_deployment_dns_records(db, deployment_id, resolver=resolver)
    assert d.verification_status == "in_progress"
    assert _verified_flags(d) == [True, False, True, False]

    # round 3: accounts CNAME flaps away, everything else appears
    resolver.answers = {k: v for k, v in full.items() if not k[0].startswith("accounts.")}
    d = verify_deployment_dns_records(db, deployment_id, resolver=resolver)
    assert _verified_flags(d) == [True, True, True, True]
    assert d.verification_status == "verified"

    # round 4: a verified deployment is left alone
    calls = len(resolver.calls)
    resolver.answers = {}
    d = verify_deployment_dns_records(db, deployment_id, resolver=resolver)
    assert d.verification_status == "verified"
    assert len(resolver.calls) == calls


def test_each_round_is_audited(db, deployment):
    resolver = FakeResolver()
    verify_deployment_dns_records(db, deployment.id, resolver=resolver)

    events = db.query(DnsVerificationEvent).filter_by(deployment_id=deployment.id).all()
    # 2 hostname CNAMEs, 1 DKIM TXT, 1 return-path CNAME
    assert len(events) == 4
    assert {e.record_set for e in events} == {
        "custom_hostname_verification", "dkim_records", "return_path_records",
    }
    assert all(e.method == "dns" and e.verified is False for e in events)


def test_resolver_failure_degrades_to_no_progress(db, deployment):
    resolver = FakeResolver(_expected_answers(deployment))
    resolver.failing.add("accounts.acme.io")

    d = verify_deployment_dns_records(db, deployment.id, resolver=resolver)

    assert d.verification_status == "in_progress"
    assert _verified_flags(d) == [False, True, True, True]
    failed = db.query(DnsVerificationEvent).filter_by(record_name="accounts.acme.io").one()
    assert "timed out" in failed.error


def test_edge_status_is_used_before_dns(db, deployment, edge):
    edge.active_hostnames = {"accounts.acme.io", "frontend.acme.io"}
    resolver = FakeResolver({k: v for k, v in _expected_answers(deployment).items() if k[1] == "TXT" or k[0].startswith("rp.")})

    d = verify_deployment_dns_records(db, deployment.id, edge_provider=edge, resolver=resolver)

    assert d.verification_status == "verified"
    assert edge.status_checks == ["accounts.acme.io", "frontend.acme.io"]
    assert ("accounts.acme.io", "CNAME") not in resolver.calls


def test_missing_domain_records_are_rebuilt_from_hosts(db, deployment):
    crud_deployment.apply_patch(db, db_obj=deployment, patch=DeploymentPatch(domain_verification_records=None))
    db.commit()

    d = verify_deployment_dns_records(db, deployment.id, resolver=FakeResolver())

    names = [r["name"] for r in d.domain_verification_records["custom_hostname_verification"]]
    assert names == ["accounts.acme.io", "frontend.acme.io"]
    assert d.verification_status == "in_progress"


def test_unknown_deployment_is_not_found(db):
    with pytest.raises(NotFoundError):
        verify_deployment_dns_records(db, 987654321, resolver=FakeResolver())


def test_poll_batch_only_touches_waiting_production(db, deployment, counter):
    create_staging_deployment(db, "Sandbox", ["email"], counter=counter)
    resolver = FakeResolver(_expected_answers(deployment))

    summary = verify_pending_deployments(db, resolver=resolver)

    assert summary == {"checked": 1, "verified": 1, "skipped": 0}
    assert crud_deployment.get(db, deployment.id).verification_status == VerificationStatus.VERIFIED.value
    assert verify_pending_deployments(db, resolver=resolver) == {"checked": 0, "verified": 0, "skipped": 0}
