"""Training drivers, losses, schedules and pipelines."""
