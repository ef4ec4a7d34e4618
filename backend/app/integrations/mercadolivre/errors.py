"""
   Exceptions for the MercadoLibre integration layer.
   HTTP / rate-limit / server / payload failures are kept apart from the
   business layer so callers can treat them uniformly.
"""

class MLError(Exception):
    """Base for all MercadoLibre errors."""

class MLAuthError(MLError):
    """Token missing, refresh failed, or 401 persisted after one refresh."""

class MLClientError(MLError):
    """Network/client-side errors after retries, or a non-retryable 4xx."""

class MLNotFoundError(MLClientError):
    """404: the requested resource does not exist for this seller."""

class MLServerError(MLError):
    """Server-side (5xx) errors after retries."""

class MLRateLimitError(MLError):
    """429 Too Many Requests not resolved after retries."""

class MLPayloadError(MLError):
    """Unexpected/invalid response payload shape or content."""
