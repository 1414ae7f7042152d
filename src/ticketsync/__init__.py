"""ticketsync - Push markdown tickets to GitHub Issues and Projects."""

__version__ = "0.1.0"
