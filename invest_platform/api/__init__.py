"""HTTP API for the invest platform backend."""
