"""Storefront accounts and session API."""
