"""Command line entry points for feedstack."""
