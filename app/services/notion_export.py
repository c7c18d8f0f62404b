from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import requests

from app.core.errors import ExportFailed

logger = logging.getLogger(__name__)

NOTION_PAGES_API = "https://api.notion.com/v1/pages"

# Notion rejects rich text objects longer than this.
MAX_TEXT_CHARS = 2000


class WorkspaceExporter(ABC):

    @abstractmethod
    def export(
        self,
        token: str,
        parent_id: str,
        title: str,
        content: str,
        tool_type: str,
        parent_type: str = "database",
    ) -> str:
        """
        Creates a page and returns its URL.
        Raises ExportFailed on any collaborator error.
        """
        pass


def chunk_text(content: str, size: int = MAX_TEXT_CHARS) -> list[str]:
    chunks = []
    for paragraph in content.split("\n\n"):
        paragraph = paragraph.strip()
        while len(paragraph) > size:
            chunks.append(paragraph[:size])
            paragraph = paragraph[size:]
        if paragraph:
            chunks.append(paragraph)
    return chunks


def _text(content: str) -> list[dict]:
    return [{"type": "text", "text": {"content": content}}]


def _paragraph(content: str) -> dict:
    return {"object": "block", "type": "paragraph", "paragraph": {"rich_text": _text(content)}}


def build_page_payload(
    parent_id: str,
    title: str,
    content: str,
    tool_type: str,
    parent_type: str = "database",
) -> dict:
    paragraphs = [_paragraph(chunk) for chunk in chunk_text(content)]
    title_text = _text(title[:MAX_TEXT_CHARS])

    if parent_type == "database":
        return {
            "parent": {"database_id": parent_id},
            "properties": {
                "Name": {"title": title_text},
                "Type": {"select": {"name": tool_type}},
            },
            "children": paragraphs,
        }

    return {
        "parent": {"page_id": parent_id},
        "properties": {"title": {"title": title_text}},
        "children": [
            {"object": "block", "type": "heading_1", "heading_1": {"rich_text": title_text}},
            _paragraph(f"Type: {tool_type}"),
            *paragraphs,
        ],
    }


def page_url_from_response(body: dict) -> str:
    if body.get("url"):
        return body["url"]
    page_id = str(body.get("id") or "").replace("-", "")
    if not page_id:
        raise ExportFailed("Notion did not return a page id")
    return f"https://notion.so/{page_id}"


class NotionExporter(WorkspaceExporter):
    def __init__(self, api_version: str = "2022-06-28", timeout: float = 15):
        self.api_version = api_version
        self.timeout = timeout

    def export(
        self,
        token: str,
        parent_id: str,
        title: str,
        content: str,
        tool_type: str,
        parent_type: str = "database",
    ) -> str:
        if not token:
            raise ExportFailed("Notion integration token is required")

        payload = build_page_payload(parent_id, title, content, tool_type, parent_type)
        headers = {
            "Authorization": f"Bearer {token}",
            "Notion-Version": self.api_version,
            "Content-Type": "application/json",
        }

        try:
            resp = requests.post(
                NOTION_PAGES_API,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("notion_export_unreachable error=%s", exc)
            raise ExportFailed("Failed to export to Notion") from exc

        if resp.status_code != 200:
            try:
                message = resp.json().get("message")
            except ValueError:
                message = None
            logger.warning("notion_export_rejected status=%s message=%s", resp.status_code, message)
            raise ExportFailed(message or f"Notion export failed ({resp.status_code})")

        return page_url_from_response(resp.json())
