"""HTTP API for storefront order and payment commands."""
