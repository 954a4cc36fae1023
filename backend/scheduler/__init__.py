"""Periodic polling of the upstream provider."""
