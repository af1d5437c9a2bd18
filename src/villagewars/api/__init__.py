"""HTTP API for Village Wars."""
