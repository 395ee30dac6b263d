"""Web status interface."""
