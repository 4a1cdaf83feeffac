"""
Internal API key check for operator-only endpoints (the consistency audit).

An unset INTERNAL_API_KEY falls back to an insecure default with a loud
warning so local development still works but a misconfigured deployment is
surfaced.
"""
import secrets
import warnings

INSECURE_DEFAULT_KEY = "insecure-default-change-me"


def resolve_internal_api_key(configured: str) -> str:
    if not configured:
        warnings.warn(
            "INTERNAL_API_KEY is not set. Using an insecure default. "
            "Set this env var in production!",
            stacklevel=2,
        )
        return INSECURE_DEFAULT_KEY
    return configured


def verify_api_key(provided_key: str | None, expected_key: str) -> bool:
    """Verify an API key using constant-time comparison to prevent timing attacks."""
    if not provided_key:
        return False
    return secrets.compare_digest(str(provided_key), str(expected_key))
