"""HTTP API for the project hub."""
