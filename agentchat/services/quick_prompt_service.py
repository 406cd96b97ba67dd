"""Quick prompts derived from the registered business functions."""

from agentchat.schemas.function_schema import QuickPrompt
from agentchat.services.function_registry import BusinessFunction, FunctionRegistry

MAX_PROMPT_TITLE_LENGTH = 20

# Checked in order; the first matching keyword group wins.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("entity_management", ("create", "add")),
    ("data_query", ("find", "search", "query")),
    ("entity_update", ("update", "modify")),
    ("entity_delete", ("delete", "remove")),
)
DEFAULT_CATEGORY = "general"

CATEGORY_ICONS = {
    "entity_management": "plus-circle",
    "data_query": "search",
    "entity_update": "edit",
    "entity_delete": "trash",
    DEFAULT_CATEGORY: "help-circle",
}

_CATEGORY_ORDER = [category for category, _ in CATEGORY_KEYWORDS] + [DEFAULT_CATEGORY]


def categorize(function_name: str) -> str:
    """Category of a function, by keywords in its name."""
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in function_name for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def _title(description: str) -> str:
    if len(description) > MAX_PROMPT_TITLE_LENGTH:
        return description[: MAX_PROMPT_TITLE_LENGTH - 3] + "..."
    return description


def _content(description: str) -> str:
    text = description.strip().rstrip(".")
    if not text:
        return "Please help me."
    return f"Please help me {text[0].lower()}{text[1:]}."


class QuickPromptService:
    """Turns registered functions into user-facing prompt suggestions."""

    def __init__(self, registry: FunctionRegistry) -> None:
        self._registry = registry

    def list_prompts(self) -> list[QuickPrompt]:
        """One prompt per function, grouped by category then name."""
        functions = sorted(
            self._registry.all_functions(),
            key=lambda fn: (_CATEGORY_ORDER.index(categorize(fn.name)), fn.name),
        )
        return [
            self._to_prompt(function, order)
            for order, function in enumerate(functions, start=1)
        ]

    @staticmethod
    def _to_prompt(function: BusinessFunction, order: int) -> QuickPrompt:
        category = categorize(function.name)
        description = function.description.strip() or function.name
        return QuickPrompt(
            id=function.name,
            title=_title(description),
            content=_content(description),
            description=description,
            category=category,
            icon=CATEGORY_ICONS[category],
            order=order,
        )
