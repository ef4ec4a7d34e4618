"""
Public surface of the MercadoLibre integration:
- import clients/helpers from here, internals are free to evolve.
"""

from .http_client import MLHttpClient
from .auth import MLTokenManager
from .orders_api import MLOrdersAPI, format_date_bound
from .claims_api import MLClaimsAPI
from .normalizers import NORMALIZED_SCHEMA_VERSION, normalize_order, normalize_claim, as_json

from .errors import (
    MLError, MLAuthError, MLClientError, MLNotFoundError, MLServerError, MLRateLimitError, MLPayloadError
)


__all__ = [
    "MLHttpClient", "MLTokenManager",
    "MLOrdersAPI", "MLClaimsAPI", "format_date_bound",
    "NORMALIZED_SCHEMA_VERSION", "normalize_order", "normalize_claim", "as_json",
    "MLError", "MLAuthError", "MLClientError", "MLNotFoundError", "MLServerError", "MLRateLimitError", "MLPayloadError",
]
