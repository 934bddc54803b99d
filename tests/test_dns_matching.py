"""Per-record-type comparison rules."""
import pytest

from app.core.errors import ValidationError
from app.services.dns_verification import record_matches


def test_cname_ignores_case_and_trailing_dot():
    assert record_matches("host.example.com.", "host.example.com", "CNAME")
    assert record_matches("HOST.Example.COM", "host.example.com.", "CNAME")
    assert not record_matches("other.example.com.", "host.example.com", "CNAME")


def test_txt_strips_exactly_one_layer_of_quotes():
    assert record_matches('"abc123"', "abc123", "TXT")
    assert record_matches("abc123", "abc123", "TXT")
    assert not record_matches('""abc123""', "abc123", "TXT")
    assert not record_matches('"ABC123"', "abc123", "TXT")


def test_a_is_exact():
    assert record_matches("192.0.2.1", "192.0.2.1", "A")
    assert not record_matches("192.0.2.10", "192.0.2.1", "A")


def test_mx_compares_exchange_only():
    assert record_matches("10 mx.example.com.", "mx.example.com", "MX")
    assert record_matches("5 MX.EXAMPLE.COM", "mx.example.com.", "MX")
    assert not record_matches("10 other.example.com.", "mx.example.com", "MX")
    assert not record_matches("mx.example.com", "mx.example.com", "MX")


def test_unknown_type_rejected():
    with pytest.raises(ValidationError):
        record_matches("x", "x", "SRV")
