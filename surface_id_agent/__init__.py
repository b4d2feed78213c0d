"""Surface ID Agent

Event-driven surface id assignment for compositor sessions.

This package provides a long-running daemon that:
- Assigns stable numeric ids to application surfaces from declarative rules
- Hands out ids from a bounded default pool for unconfigured applications
- Mirrors every assignment into a key-value store (app id <-> surface id)

License: MIT
Version: 1.0.0
"""

__version__ = "1.0.0"
