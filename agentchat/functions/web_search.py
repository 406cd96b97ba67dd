"""Web search business function using DuckDuckGo."""

from langchain_community.tools import DuckDuckGoSearchResults
from langchain_core.tools import tool

from agentchat.services.function_registry import BusinessFunction


@tool
def web_search(query: str, max_results: int = 5) -> str:
    """Search the web for current information.

    Use this when the user asks about something that needs up-to-date
    information from the internet, such as current events, weather or news.

    Args:
        query: The search query string.
        max_results: How many results to return.

    Returns:
        Search results containing snippets, titles, and links.
    """
    search = DuckDuckGoSearchResults(num_results=max(1, min(max_results, 10)))
    result = search.invoke(query)
    return str(result)


def web_search_function() -> BusinessFunction:
    """The web search tool exposed as a business function."""
    return BusinessFunction.from_tool(web_search)
