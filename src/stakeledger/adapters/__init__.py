"""Adapters connecting the domain ports to HTTP endpoints, files and processes."""
