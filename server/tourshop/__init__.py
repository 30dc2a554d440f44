"""Tour shop storefront and admin API."""

__version__ = "1.0.0"
