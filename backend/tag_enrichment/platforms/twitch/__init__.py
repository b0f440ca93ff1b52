"""Twitch platform integration."""
