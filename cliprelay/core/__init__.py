"""Shared building blocks: configuration, addresses and error types."""
