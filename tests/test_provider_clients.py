"""Edge hostname and email domain clients against a mocked transport."""
import json

import httpx
import pytest

from app.core.errors import ExternalError
from app.services.edge_hostname import EdgeHostnameClient, generate_domain_verification_records
from app.services.email_domain import (
    EmailDomain,
    EmailDomainClient,
    build_email_verification_records,
)


def _envelope(result=None, success=True, errors=None):
    return {"success": success, "errors": errors or [], "messages": [], "result": result}


def _edge(handler):
    return EdgeHostnameClient(
        api_token="tok",
        zone_id="zone1",
        base_url="https://edge.test/client/v4",
        transport=httpx.MockTransport(handler),
    )


def _email(handler):
    return EmailDomainClient(
        account_token="acct",
        base_url="https://mail.test",
        transport=httpx.MockTransport(handler),
    )


# ── edge hostnames ──

def test_create_custom_hostname_posts_hostname_and_origin():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_envelope({"id": "abc", "hostname": "accounts.acme.io", "status": "pending"}))

    created = _edge(handler).create_custom_hostname("accounts.acme.io", "accounts.wacht.services")

    assert created.id == "abc"
    assert created.status == "pending"
    assert seen == {
        "method": "POST",
        "path": "/client/v4/zones/zone1/custom_hostnames",
        "auth": "Bearer tok",
        "body": {"hostname": "accounts.acme.io", "custom_origin_server": "accounts.wacht.services"},
    }


def test_unsuccessful_envelope_is_external_error():
    def handler(request):
        return httpx.Response(200, json=_envelope(success=False, errors=[{"code": 1406, "message": "duplicate"}]))

    with pytest.raises(ExternalError, match="1406: duplicate"):
        _edge(handler).create_custom_hostname("accounts.acme.io", "o")


def test_http_error_status_is_external_error():
    def handler(request):
        return httpx.Response(503, text="unavailable")

    with pytest.raises(ExternalError, match="HTTP 503"):
        _edge(handler).delete_custom_hostname("abc")


def test_transport_failure_is_external_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ExternalError):
        _edge(handler).delete_custom_hostname("abc")


def test_status_check_lists_then_reads_detail():
    paths = []

    def handler(request):
        paths.append((request.url.path, request.url.params.get("hostname")))
        if request.url.path.endswith("/custom_hostnames"):
            return httpx.Response(200, json=_envelope([{"id": "h1", "hostname": "accounts.acme.io", "status": "pending"}]))
        return httpx.Response(200, json=_envelope({"id": "h1", "hostname": "accounts.acme.io", "status": "active"}))

    assert _edge(handler).check_custom_hostname_status("accounts.acme.io") is True
    assert paths == [
        ("/client/v4/zones/zone1/custom_hostnames", "accounts.acme.io"),
        ("/client/v4/zones/zone1/custom_hostnames/h1", None),
    ]


def test_status_check_unknown_hostname_is_inactive():
    def handler(request):
        return httpx.Response(200, json=_envelope([]))

    assert _edge(handler).check_custom_hostname_status("accounts.acme.io") is False


def test_domain_verification_records_point_at_edge_targets():
    records = generate_domain_verification_records(
        "accounts.acme.io", "frontend.acme.io", accounts_target="a.edge", frontend_target="f.edge",
    )
    assert [(r.name, r.record_type, r.value) for r in records.custom_hostname_verification] == [
        ("accounts.acme.io", "CNAME", "a.edge"),
        ("frontend.acme.io", "CNAME", "f.edge"),
    ]
    assert records.edge_verification == []


# ── email domains ──

def test_create_domain_requests_return_path_subdomain():
    seen = {}

    def handler(request):
        seen["token"] = request.headers["X-Postmark-Account-Token"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "ID": 77,
            "Name": "wcmail.acme.io",
            "DKIMPendingHost": "2026pm._domainkey.wcmail.acme.io",
            "DKIMPendingTextValue": "k=rsa;p=XYZ",
            "ReturnPathDomain": "rp.wcmail.acme.io",
            "ReturnPathDomainCNAMEValue": "pm.mtasv.net",
            "SPFVerified": False,
        })

    domain = _email(handler).create_domain("wcmail.acme.io")

    assert seen == {"token": "acct", "body": {"Name": "wcmail.acme.io", "ReturnPathDomain": "rp.wcmail.acme.io"}}
    assert domain.id == 77
    assert domain.return_path_domain_cname_value == "pm.mtasv.net"


def test_email_provider_error_carries_status_and_body():
    def handler(request):
        return httpx.Response(422, text='{"Message":"Domain already exists"}')

    with pytest.raises(ExternalError, match=r"\(422\).*already exists"):
        _email(handler).create_domain("wcmail.acme.io")


def test_email_verification_records_from_domain():
    domain = EmailDomain(
        id=5,
        name="wcmail.acme.io",
        dkim_verified=True,
        dkim_host="old._domainkey.wcmail.acme.io",
        dkim_text_value="k=rsa;p=OLD",
        dkim_pending_host="new._domainkey.wcmail.acme.io",
        dkim_pending_text_value="k=rsa;p=NEW",
        return_path_domain="rp.wcmail.acme.io",
        return_path_domain_cname_value="pm.mtasv.net",
    )

    records = build_email_verification_records(domain)

    assert records.email_domain_id == 5
    assert [(r.name, r.record_type, r.verified) for r in records.dkim_records] == [
        ("new._domainkey.wcmail.acme.io", "TXT", False),
        ("old._domainkey.wcmail.acme.io", "TXT", True),
    ]
    assert [(r.name, r.record_type, r.value) for r in records.return_path_records] == [
        ("rp.wcmail.acme.io", "CNAME", "pm.mtasv.net"),
    ]


def test_domain_without_tokens_yields_no_records():
    records = build_email_verification_records(EmailDomain(id=1, name="wcmail.acme.io"))
    assert records.dkim_records == []
    assert records.return_path_records == []
