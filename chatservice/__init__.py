"""SQLite-backed repositories for a chat service: calls, statuses, reports, contacts, groups, reviews and backups."""

__version__ = "0.1.0"