"""HTTP routers for the society portal."""

from society_portal.api.billing import router as billing_router
from society_portal.api.residents import router as residents_router

__all__ = ["billing_router", "residents_router"]
