"""Unit tests for provisioning input validation."""
import pytest

from app.core.errors import ValidationError
from app.services.validation import (
    validate_auth_methods,
    validate_domain_format,
    validate_project_name,
)


@pytest.mark.parametrize("domain", [
    "example.com",
    "sub.example.co.uk",
    "my-app.io",
    "a1.b2",
])
def test_valid_domains(domain):
    validate_domain_format(domain)


@pytest.mark.parametrize("domain", [
    "",
    "localhost",
    "https://example.com",
    "example.com/path",
    "example.com?x=1",
    "example.com#frag",
    "-bad.example.com",
    "bad-.example.com",
    "exa_mple.com",
    "example..com",
    "ex ample.com",
    "xn--bcher-kva.ä.com",
    ("a" * 64) + ".com",
    ".".join(["abcdefghi"] * 26),
])
def test_invalid_domains(domain):
    with pytest.raises(ValidationError):
        validate_domain_format(domain)


def test_domain_label_boundary():
    validate_domain_format(("a" * 63) + ".com")


def test_auth_methods_allow_list():
    validate_auth_methods(["email", "phone", "username", "google_oauth", "x_oauth"])


def test_auth_methods_empty():
    with pytest.raises(ValidationError, match="At least one"):
        validate_auth_methods([])


def test_auth_methods_unknown():
    with pytest.raises(ValidationError, match="myspace_oauth"):
        validate_auth_methods(["email", "myspace_oauth"])


def test_project_name():
    validate_project_name("Acme")
    with pytest.raises(ValidationError):
        validate_project_name("   ")
    with pytest.raises(ValidationError):
        validate_project_name("x" * 101)
