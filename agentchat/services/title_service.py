"""Service for generating chat session titles via LLM."""

from langchain_core.language_models import BaseChatModel

from agentchat.models.chat_session import MAX_TITLE_LENGTH

TITLE_WORD_LIMIT = 8


class TitleService:
    """Generates concise session titles from the first user message."""

    def __init__(self, llm: BaseChatModel) -> None:
        self._llm = llm

    async def generate_title(self, message: str) -> str:
        """Summarise a user message into a short title."""
        prompt = (
            f"Summarise the following user request as a title of at most "
            f"{TITLE_WORD_LIMIT} words. Reply with the title only:\n"
            f"{message}"
        )
        response = await self._llm.ainvoke(prompt)
        title = str(response.content).strip().strip("\"'").strip()
        return title[:MAX_TITLE_LENGTH].rstrip()
