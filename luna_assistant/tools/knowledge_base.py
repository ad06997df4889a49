from typing import Any, Dict, List

from pydantic import Field

from luna_assistant.tools import ToolParams, tool

SEARCH_LIMIT = 5
NO_RESULTS_MESSAGE = (
    "I couldn't find specific information in the knowledge base for your query. "
    "I'll answer based on my general knowledge and the current context."
)


class SearchParams(ToolParams):
    query: str = Field(..., min_length=1, description="The search query for the knowledge base.")


def _format_hit(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(item.get("chunk_id") or item.get("id") or ""),
        "title": item.get("title") or "Untitled Document",
        "snippet": item.get("snippet") or "No snippet available.",
        "url": item.get("url"),
    }


@tool("search", params=SearchParams)
async def search(ctx, params: SearchParams) -> Dict[str, Any]:
    """Search the knowledge base for information relevant to the user's query."""
    data = await ctx.backend.post("/api/knowledge-base/search", {"query": params.query, "limit": SEARCH_LIMIT})

    hits: List[Dict[str, Any]] = []
    if isinstance(data, list):
        hits = data
    elif isinstance(data, dict) and isinstance(data.get("results"), list):
        hits = data["results"]

    if not hits:
        return {"results": [], "message": NO_RESULTS_MESSAGE}
    return {"results": [_format_hit(h) for h in hits if isinstance(h, dict)]}
