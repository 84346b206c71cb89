"""Sangam error taxonomy.

Lower layers raise these; SangamService converts them into a structured
SangamResponse(success=False, error=...). Nothing above the service sees a raw exception.
"""


class SangamError(Exception):
    """Base class for all Sangam errors."""

    pass


class ConfigurationError(SangamError):
    """Missing or invalid credentials/settings. Fatal; reported by validate_configuration."""

    pass


class TransientAPIError(SangamError):
    """Network failure, non-2xx status or malformed body from an external API."""

    pass


class ExtractionError(SangamError):
    """Attachment could not be fetched or decoded. Recovered locally by the extractor."""

    pass


class RetrievalError(SangamError):
    """Vector store failure with no remaining fallback."""

    pass


class ValidationError(SangamError, ValueError):
    """Invalid caller input or response shape. Raised before any network call where possible."""

    pass


class TenantRequiredError(ValidationError):
    """Raised when tenant_id is None or empty."""

    pass


class SynthesisError(SangamError):
    """Generative model returned nothing usable."""

    pass
