"""HTTP controllers for web API endpoints.

All operations are read-only or prepare data for client-side signing.
"""

from routeguard.web.controllers.chains import router as chains_router
from routeguard.web.controllers.routes import router as routes_router

__all__ = [
    "chains_router",
    "routes_router",
]
