"""Content analysis and link suggestion engine."""
