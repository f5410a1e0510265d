"""
Intake Interfaces Layer
=======================

Interface adapters (controllers) for the intake module.

This is the outermost layer - handles HTTP requests/responses and
delegates to the review sessions and application services.
"""

from ticket_creator.intake.interfaces.controllers import (
    directory_router,
    models_router,
    sessions_router,
)

__all__ = ["directory_router", "models_router", "sessions_router"]
