"""Service layer reused by the API and CLI."""

from services.closure import ClosureWorkflow
from services.publishing import PublishingCoordinator
from services.runtime import ContinuityServices, build_services

__all__ = ["ClosureWorkflow", "ContinuityServices", "PublishingCoordinator", "build_services"]
