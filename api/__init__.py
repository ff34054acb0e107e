"""HTTP API for the contract generator."""
