"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, NewTask, TaskPatch, ...)
- task_store.py: in-memory collection with optimistic status changes + rollback
- project_catalog.py: project listing, selection and collaborators
"""
