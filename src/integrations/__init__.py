"""Integrations with remote content APIs."""
