"""tasksync: private per-user task lists kept in sync across open sessions."""

__version__ = "0.1.0"
