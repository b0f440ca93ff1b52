"""Kick platform integration."""
