"""HTTP API for photomap application."""
