"""Platform API clients and tag fetchers."""
