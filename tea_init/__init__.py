"""Bootstrap helpers for the tea CLI companion tool."""
