from .api_key import resolve_internal_api_key, verify_api_key
from .dependencies import verify_internal_api_key

__all__ = [
    "resolve_internal_api_key",
    "verify_api_key",
    "verify_internal_api_key",
]
