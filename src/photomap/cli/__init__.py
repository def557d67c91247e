"""Command line maintenance tasks for photomap application."""
