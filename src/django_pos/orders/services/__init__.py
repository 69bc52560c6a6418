"""Stateless services for pricing and order lifecycle operations."""
