import logging

import httpx

from app.config import settings
from app.errors import ConfigurationError

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"

# Block types whose rich text is carried into the extracted page text.
TEXT_BLOCK_TYPES = (
    "paragraph",
    "heading_1",
    "heading_2",
    "heading_3",
    "bulleted_list_item",
    "numbered_list_item",
)


class NotionClient:
    """Async Notion API client authenticated with an internal integration token.

    Usage::

        notion = NotionClient()                   # token from settings
        pages = await notion.search_pages()
        text = await notion.page_text(pages[0]["id"])
        await notion.aclose()
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        token = token or settings.notion_token
        if not token:
            raise ConfigurationError("NOTION_TOKEN is not configured.")
        self._client = httpx.AsyncClient(
            base_url=NOTION_API_URL,
            headers={
                "Authorization": f"Bearer {token}",
                "Notion-Version": settings.notion_version,
            },
            timeout=30.0,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def search_pages(self, page_size: int = 100) -> list[dict]:
        """Every page the integration has been shared with (first result page)."""
        resp = await self._client.post(
            "/search",
            json={
                "query": "",
                "filter": {"property": "object", "value": "page"},
                "page_size": page_size,
            },
        )
        resp.raise_for_status()
        return resp.json().get("results", [])

    async def block_children(self, block_id: str) -> list[dict]:
        blocks: list[dict] = []
        params: dict = {"page_size": 100}
        while True:
            resp = await self._client.get(f"/blocks/{block_id}/children", params=params)
            resp.raise_for_status()
            body = resp.json()
            blocks.extend(body.get("results", []))
            if not body.get("has_more"):
                return blocks
            params["start_cursor"] = body["next_cursor"]

    async def page_text(self, page_id: str) -> str:
        lines: list[str] = []
        for block in await self.block_children(page_id):
            content = block.get(block.get("type", ""), {})
            if block.get("type") in TEXT_BLOCK_TYPES and content.get("rich_text"):
                lines.append("".join(t.get("plain_text", "") for t in content["rich_text"]))
        logger.debug("Read %d text blocks from Notion page %s", len(lines), page_id)
        return "\n".join(lines)

    @staticmethod
    def page_title(page: dict) -> str:
        for prop in page.get("properties", {}).values():
            if prop.get("type") == "title" and prop.get("title"):
                return prop["title"][0].get("plain_text") or "Untitled Page"
        return "Untitled Page"
