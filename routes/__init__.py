"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.epw import router as epw_router

__all__ = [
    "epw_router",
]
