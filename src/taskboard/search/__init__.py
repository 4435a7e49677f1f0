"""Assignable-user search: coordinator (user_search.py) and result cache (search_cache.py)."""
