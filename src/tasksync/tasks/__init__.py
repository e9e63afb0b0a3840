"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskUpdate) + validation and list views
- task_store.py: SQLite-backed, owner-scoped storage
- guard.py: ownership check before writes
- task_api.py: guard -> store -> change bus pipeline used by connectors
"""
