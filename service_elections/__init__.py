"""Elections submission service."""
