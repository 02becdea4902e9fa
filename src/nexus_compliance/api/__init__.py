"""HTTP API for the compliance workflow."""
