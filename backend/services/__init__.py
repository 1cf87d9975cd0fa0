"""
Service layer: startup bootstrap.
Repositories own all reads and writes; services only orchestrate them.
"""
from .bootstrap import ensure_default_user, initialize_app

__all__ = [
    "ensure_default_user",
    "initialize_app",
]
