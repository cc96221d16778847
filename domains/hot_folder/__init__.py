"""
Hot Folder Domain

Exchanges geometry with the peer application through a shared directory tree:
- Jobs (JSON descriptors) -> OBJ exports from open part documents
- IGES drops from the peer -> imported into the host document
- Stability gate so half-written files are never consumed
"""

__all__ = [
    "dispatcher",
    "errors",
    "gateway",
    "handlers",
    "jobs",
    "layout",
    "service",
    "stability",
    "watcher",
]
