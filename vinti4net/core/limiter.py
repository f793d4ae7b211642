"""
Rate limiter shared by the checkout routes.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from vinti4net.core.config import get_config
from vinti4net.core.exceptions import ConfigurationError

DEFAULT_CHECKOUT_LIMIT = "30/minute"

# Global rate limiter instance
limiter = Limiter(key_func=get_remote_address, default_limits=["100 per minute"])


def checkout_rate_limit() -> str:
    """Checkout limit from the active configuration, read per request."""
    try:
        return get_config().rate_limit.checkout_rate_limit
    except ConfigurationError:
        return DEFAULT_CHECKOUT_LIMIT
