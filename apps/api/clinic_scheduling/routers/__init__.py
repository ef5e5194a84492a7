"""API routers."""

from clinic_scheduling.routers.appointments import router as appointments_router

__all__ = ["appointments_router"]
