"""Pre-checkout disk space guard for CI build nodes."""

__version__ = "0.1.0"
