"""PC shop core service: orders, stock, payment webhooks and configuration approval."""

__version__ = "1.0.0"
