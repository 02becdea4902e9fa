"""API routes."""

from nexus_compliance.api.routes.escrow import router as escrow_router
from nexus_compliance.api.routes.health import router as health_router
from nexus_compliance.api.routes.payroll import router as payroll_router
from nexus_compliance.api.routes.time_logs import router as time_logs_router

__all__ = ["escrow_router", "health_router", "payroll_router", "time_logs_router"]
