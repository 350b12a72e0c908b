from typing import Any, AsyncIterator, Optional

from notion_client import AsyncClient

EMAIL_PROPERTY = "Email"
NAME_PROPERTY = "Name"
REFERRAL_CODE_PROPERTY = "Referral Code"
REFERRED_BY_PROPERTY = "Referred By"
REFERRER_PROPERTY = "Referrer"


def email_equals(email: str) -> dict:
    return {"property": EMAIL_PROPERTY, "email": {"equals": email}}


def rich_text_equals(prop: str, value: str) -> dict:
    return {"property": prop, "rich_text": {"equals": value}}


def title_property(value: str) -> dict:
    return {"title": [{"text": {"content": value}}]}


def rich_text_property(value: Optional[str]) -> dict:
    if not value:
        return {"rich_text": []}
    return {"rich_text": [{"text": {"content": value}}]}


def email_property(value: str) -> dict:
    return {"email": value}


def relation_property(page_id: Optional[str]) -> dict:
    if not page_id:
        return {"relation": []}
    return {"relation": [{"id": page_id}]}


class NotionStore:
    """
    The waitlist database in Notion. Every call goes straight to the Notion
    API; nothing is cached locally.
    """

    def __init__(self, client: AsyncClient, database_id: str):
        self.client = client
        self.database_id = database_id

    @classmethod
    def from_settings(cls, config) -> "NotionStore":
        client = AsyncClient(auth=config.NOTION_SECRET or None, timeout_ms=config.NOTION_TIMEOUT_MS)
        return cls(client, config.NOTION_DB_ID)

    async def query(
        self,
        filter: Optional[dict] = None,
        start_cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"database_id": self.database_id}
        if filter is not None:
            params["filter"] = filter
        if start_cursor is not None:
            params["start_cursor"] = start_cursor
        if page_size is not None:
            params["page_size"] = page_size
        return await self.client.databases.query(**params)

    async def create_page(self, properties: dict[str, Any]) -> dict[str, Any]:
        return await self.client.pages.create(
            parent={"database_id": self.database_id}, properties=properties
        )

    async def iter_pages(self, page_size: int = 100) -> AsyncIterator[list[dict]]:
        """Yield the database one result page at a time, following next_cursor."""
        cursor: Optional[str] = None
        while True:
            response = await self.query(start_cursor=cursor, page_size=page_size)
            yield response.get("results", [])
            if not response.get("has_more"):
                break
            cursor = response.get("next_cursor")

    async def close(self) -> None:
        await self.client.aclose()
