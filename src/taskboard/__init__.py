"""
Client-side task board engine.

Subpackages:
- policy: role capabilities, fetch strategy, user-search scope
- gateway: HTTP client for the task service + wire normalization
- tasks: domain models, the optimistic task store, the project catalog
- search: debounced/cancelable assignable-user search with a TTL cache
- board: filtered views and drag/drop translation over the store
- cli: console front-end (composition root + slash commands)
"""

__version__ = "0.1.0"
