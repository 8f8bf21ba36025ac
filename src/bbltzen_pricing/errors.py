"""Error types raised by the pricing engine."""


class PricingError(Exception):
    """Base class for pricing engine errors."""


class NotFoundError(PricingError, LookupError):
    """A referenced entity (article, personalization, cup size, order...) is absent."""


class UnsupportedKindError(PricingError, ValueError):
    """Article kind discriminator outside {BS, BC, D}."""


class InvalidStateError(PricingError):
    """Order is not eligible for recomputation (completed or cancelled)."""


class InvalidArgumentError(PricingError, ValueError):
    """Argument outside its valid domain (rate, quantity, discount percent...)."""
