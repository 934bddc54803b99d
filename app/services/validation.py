"""
Syntactic checks on provisioning input.

Pure functions: no I/O, no side effects. Every failure raises
``ValidationError`` with a caller-facing message.
"""
from typing import Iterable

from app.core.errors import ValidationError

MAX_DOMAIN_LENGTH = 253
MAX_LABEL_LENGTH = 63
MAX_PROJECT_NAME_LENGTH = 100

# Characters that only appear in URLs, never in a bare hostname
_URL_MARKERS = ("://", "/", "?", "#")

VALID_AUTH_METHODS = frozenset({
    "email",
    "phone",
    "username",
    "google_oauth",
    "apple_oauth",
    "facebook_oauth",
    "github_oauth",
    "microsoft_oauth",
    "discord_oauth",
    "linkedin_oauth",
    "gitlab_oauth",
    "x_oauth",
})


def _is_label_char(c: str) -> bool:
    return c == "-" or (c.isascii() and c.isalnum())


def validate_domain_format(domain: str) -> None:
    if not domain or len(domain) > MAX_DOMAIN_LENGTH:
        raise ValidationError(f"Domain must be between 1 and {MAX_DOMAIN_LENGTH} characters")

    if any(marker in domain for marker in _URL_MARKERS):
        raise ValidationError("Domain cannot contain protocol, path, query, or fragment")

    labels = domain.split(".")
    if len(labels) < 2:
        raise ValidationError("Domain must have at least two labels (e.g., example.com)")

    for label in labels:
        if not label or len(label) > MAX_LABEL_LENGTH:
            raise ValidationError(
                f"Each domain label must be between 1 and {MAX_LABEL_LENGTH} characters"
            )
        if not all(_is_label_char(c) for c in label):
            raise ValidationError(
                "Domain labels can only contain alphanumeric characters and hyphens"
            )
        if label.startswith("-") or label.endswith("-"):
            raise ValidationError(
                "Domain labels must start and end with alphanumeric characters"
            )


def validate_auth_methods(methods: Iterable[str]) -> None:
    methods = list(methods)
    if not methods:
        raise ValidationError("At least one authentication method must be specified")

    for method in methods:
        if method not in VALID_AUTH_METHODS:
            raise ValidationError(f"Invalid authentication method: {method}")


def validate_project_name(name: str) -> None:
    if not name or not name.strip():
        raise ValidationError("Project name cannot be empty")
    if len(name) > MAX_PROJECT_NAME_LENGTH:
        raise ValidationError(
            f"Project name cannot exceed {MAX_PROJECT_NAME_LENGTH} characters"
        )
