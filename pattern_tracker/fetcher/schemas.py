"""
Normalized snapshot produced by every content fetcher.

The snapshot is stored verbatim as an Update's content, so its field
names are part of the persisted layout.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class Snapshot(BaseModel):
    """One fetched, normalized copy of a source page."""

    url: str = Field(..., description="URL that was fetched")
    title: str = Field(default="", description="Page title")
    text: str = Field(default="", description="Visible text with markup removed")
    markdown: str = Field(
        default="",
        description="Lightly structured rendering (headings, lists, code fences)",
    )
    links: list[str] = Field(default_factory=list, description="Absolute outbound links")
    images: list[str] = Field(default_factory=list, description="Absolute image URLs")
    fetch_method: Literal["static", "rendered", "manual"] = Field(
        default="static",
        description="How the content was obtained",
    )
    fetch_duration_ms: int = Field(default=0, ge=0)
    status_code: int | None = Field(default=None)

    @property
    def body(self) -> str:
        """Content used for hashing and extraction (markdown, else text)."""
        return self.markdown or self.text

    def to_content(self) -> dict[str, Any]:
        """Dict form stored in ``updates.content``."""
        return self.model_dump()

    @classmethod
    def from_content(cls, content: dict[str, Any]) -> "Snapshot":
        """Rebuild a snapshot from stored Update content."""
        return cls.model_validate(content)
