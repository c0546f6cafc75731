"""Repository implementations for storefront."""
