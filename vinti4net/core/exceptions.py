"""
Exception hierarchy for the Vinti4Net gateway client.

Design:
    - Each exception carries an `http_status_code` so the optional FastAPI
      integration can map it without a per-class handler.
    - `to_dict()` returns full internal details (for logging).
    - `to_safe_dict()` returns a sanitized payload (for client-facing APIs).
    - Messages name the offending field but never contain the POS auth code.
"""

from typing import Dict, Any, List


class Vinti4Error(Exception):
    """Base exception for all gateway client errors"""

    http_status_code: int = 500

    def __init__(self, message: str, details: str = None, context: Dict[str, Any] = None):
        self.message = message
        self.details = details
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Full details for internal logging; never send to client."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "context": self.context,
        }

    def to_safe_dict(self) -> Dict[str, Any]:
        """Sanitized response safe for end-users; no internal details."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
        }


class InvalidArgument(Vinti4Error):
    """Raised when caller input is malformed or not allowed by the gateway rules"""

    http_status_code: int = 400

    def __init__(self, message: str, field: str = None, value: Any = None):
        self.field = field
        self.value = value
        context = {}

        if field:
            context["field"] = field
            if value is not None:
                context["invalid_value"] = str(value)

        details = f"Validation failed for field: {field}" if field else None
        super().__init__(message, details, context)

    def to_safe_dict(self) -> Dict[str, Any]:
        result = super().to_safe_dict()
        if self.field:
            result["field"] = self.field
        return result


class MissingBillingField(InvalidArgument):
    """Raised when a purchase is missing billing data required for 3-D Secure"""

    def __init__(self, fields: List[str]):
        self.fields = list(fields)
        super().__init__(
            f"missing required billing fields: {', '.join(self.fields)}",
            field=self.fields[0] if self.fields else None,
        )
        self.context["missing_fields"] = self.fields

    def to_safe_dict(self) -> Dict[str, Any]:
        result = super().to_safe_dict()
        result["fields"] = self.fields
        return result


class InvalidCurrency(InvalidArgument):
    """Raised for a currency that is neither a known symbol nor a numeric code"""

    def __init__(self, currency: Any):
        self.currency = currency
        super().__init__(f"Invalid currency: {currency}", field="currency", value=currency)


class AlreadyPrepared(Vinti4Error):
    """Raised when a client instance is asked to prepare or sign a second request"""

    http_status_code: int = 409

    def __init__(self, message: str = "Only one payment request may be prepared per client"):
        super().__init__(message, "Request already prepared", {})


class ConfigurationError(Vinti4Error):
    """Raised for configuration-related issues (missing env vars, invalid settings)"""

    http_status_code: int = 500

    def __init__(self, message: str, config_key: str = None, expected_value: str = None):
        self.config_key = config_key
        self.expected_value = expected_value
        context = {}
        if config_key:
            context["config_key"] = config_key
        if expected_value:
            context["expected_value"] = expected_value

        details = f"Configuration error for: {config_key}" if config_key else None
        super().__init__(message, details, context)

    def to_safe_dict(self) -> Dict[str, Any]:
        """Never expose config internals to clients."""
        return {
            "error": "ConfigurationError",
            "message": "A server configuration error occurred.",
        }

