"""
Service Container

Builds the application's collaborators once at startup and closes them on
shutdown. Route handlers reach them through ``app.state.services``.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from clinic_scheduler.config import Settings
from clinic_scheduler.core.agent.conversation import ConversationLoop, build_system_prompt
from clinic_scheduler.core.agent.tools import SchedulingToolDispatcher
from clinic_scheduler.core.scheduling.engine import SchedulingEngine
from clinic_scheduler.core.scheduling.store import SqlAppointmentStore
from clinic_scheduler.core.session import ConversationStore
from clinic_scheduler.infra.claude import ClaudeClient
from clinic_scheduler.infra.database import Database
from clinic_scheduler.infra.directory import Directory
from clinic_scheduler.infra.redis import RedisClient

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Explicitly wired collaborators with an open/close lifecycle."""

    settings: Settings
    database: Database
    engine: SchedulingEngine
    directory: Directory
    conversations: ConversationStore
    dispatcher: SchedulingToolDispatcher
    redis: Optional[RedisClient] = None
    agent_client: Optional[ClaudeClient] = None
    conversation_loop: Optional[ConversationLoop] = None

    async def close(self) -> None:
        """Release connections in reverse order of creation."""
        if self.agent_client is not None:
            await self.agent_client.close()
        if self.redis is not None:
            await self.redis.close()
        await self.database.close()
        logger.info("Services closed")


def build_services(
    settings: Settings,
    database: Optional[Database] = None,
    redis: Optional[RedisClient] = None,
    agent_client: Optional[ClaudeClient] = None,
) -> ServiceContainer:
    """
    Wire the scheduling engine, directory, conversation store and loop.

    Without an agent client or API key the REST surface still works and
    chat requests are refused.
    """
    database = database or Database(settings.database_url, echo=settings.debug)
    if redis is None and settings.redis_url:
        redis = RedisClient(settings.redis_url)

    engine = SchedulingEngine(
        SqlAppointmentStore(database),
        business_hours=settings.business_hours,
        allowed_durations=settings.allowed_durations_list,
    )
    directory = Directory(database, settings.clinic_info)
    conversations = ConversationStore(redis, settings.conversation_ttl_seconds)
    dispatcher = SchedulingToolDispatcher(engine, directory)

    if agent_client is None and settings.anthropic_api_key:
        agent_client = ClaudeClient(
            api_key=settings.anthropic_api_key,
            model=settings.agent_model,
            fallback_model=settings.agent_fallback_model or None,
        )

    loop = None
    if agent_client is not None:
        loop = ConversationLoop(
            agent_client=agent_client,
            dispatcher=dispatcher,
            conversations=conversations,
            system_prompt=build_system_prompt(
                settings.clinic_info,
                settings.business_hours,
                settings.allowed_durations_list,
            ),
            max_tool_rounds=settings.max_tool_rounds,
            max_tokens=settings.agent_max_tokens,
        )
    else:
        logger.warning("ANTHROPIC_API_KEY not set - chat assistant disabled")

    return ServiceContainer(
        settings=settings,
        database=database,
        engine=engine,
        directory=directory,
        conversations=conversations,
        dispatcher=dispatcher,
        redis=redis,
        agent_client=agent_client,
        conversation_loop=loop,
    )
