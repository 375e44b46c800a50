"""
FastAPI dependencies resolving the application's service container.
"""

from fastapi import HTTPException, Request, status

from clinic_scheduler.container import ServiceContainer
from clinic_scheduler.core.agent.conversation import ConversationLoop
from clinic_scheduler.core.scheduling.engine import SchedulingEngine
from clinic_scheduler.infra.directory import Directory


def get_services(request: Request) -> ServiceContainer:
    """Container attached to the app at startup."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return services


def get_engine(request: Request) -> SchedulingEngine:
    return get_services(request).engine


def get_directory(request: Request) -> Directory:
    return get_services(request).directory


def get_conversation_loop(request: Request) -> ConversationLoop:
    loop = get_services(request).conversation_loop
    if loop is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat assistant is not configured",
        )
    return loop
