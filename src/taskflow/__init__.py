"""
taskflow: recurrence and dependency core of a task manager.

Components:
- tasks/: data model, SQLite store, status-update entry point
- recurrence/: date stepping, projection of virtual occurrences, materializer
- graph/: "blocked by" edges, cycle validation, readiness
"""

__version__ = "0.1.0"
