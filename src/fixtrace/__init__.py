"""FixTrace - issue lifecycle tracking and backend-fix detection."""

__version__ = "0.4.0"
