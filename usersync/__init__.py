"""usersync: Clerk webhook receiver that keeps the application user table in sync."""

__version__ = "0.1.0"
