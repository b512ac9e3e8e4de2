"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, DependencyEdge, ...)
- task_store.py: SQLite-backed storage for tasks and dependency edges
- task_api.py: status updates with the recurrence hook, calendar feed helpers
"""
