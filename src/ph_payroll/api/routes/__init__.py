"""API routes."""

from ph_payroll.api.routes.dtr import router as dtr_router
from ph_payroll.api.routes.health import router as health_router
from ph_payroll.api.routes.payroll_periods import router as payroll_periods_router

__all__ = ["dtr_router", "health_router", "payroll_periods_router"]
