"""Background task for generating chat session titles."""

import structlog
from langchain_core.language_models import BaseChatModel

from agentchat.repositories.chat_repo import ChatRepository
from agentchat.services.title_service import TitleService

logger = structlog.get_logger()


async def generate_session_title(
    session_id: str,
    message: str,
    llm: BaseChatModel,
    chat_repo: ChatRepository,
) -> None:
    """Generate and persist a title for a session still on the placeholder.

    Designed to run as a FastAPI BackgroundTask so that the chat response
    is not blocked by the LLM call. Failures are logged and leave the
    placeholder title in place.
    """
    try:
        title = await TitleService(llm).generate_title(message)
        if not title:
            logger.warning("Empty session title generated", session_id=session_id)
            return

        session = await chat_repo.find_session_by_id(session_id)
        if session is None or not session.has_placeholder_title:
            return
        await chat_repo.update_session_title(session_id, title)

        logger.info(
            "Session title generated",
            session_id=session_id,
            title=title,
        )
    except Exception:
        logger.exception(
            "Failed to generate session title",
            session_id=session_id,
        )
