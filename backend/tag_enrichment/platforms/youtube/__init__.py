"""YouTube platform integration."""
