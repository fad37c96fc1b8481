"""Record store connection management."""

from acmer.db.init import close_database, init_database

__all__ = ["close_database", "init_database"]
