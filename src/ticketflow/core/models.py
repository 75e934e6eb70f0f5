"""Pydantic models for tickets and the persisted ticket document.

Python attributes are snake_case; the JSON document keeps the camelCase keys
(``blockedBy``, ``createdAt``, ``nextId``...) through alias generation, and
every model accepts either spelling on input.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TicketStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    CLOSED = "closed"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Ticket(_CamelModel):
    """A single ticket as stored in the document."""

    id: str
    title: str
    description: str = ""
    projects: list[str] = Field(default_factory=list)
    blocked_by: list[str] = Field(default_factory=list)
    status: TicketStatus = TicketStatus.OPEN
    created_at: str
    updated_at: str
    # Legacy single-project field, only present on old records
    project_id: str | None = None

    def in_project(self, project: str) -> bool:
        """Case-insensitive project membership, falling back to ``projectId``."""
        wanted = project.lower()
        if self.projects:
            return any(p.lower() == wanted for p in self.projects)
        if self.project_id:
            return self.project_id.lower() == wanted
        return False


class Document(_CamelModel):
    """The whole persisted container: one JSON file, loaded and saved as a unit."""

    version: str | None = None
    tickets: dict[str, Ticket] = Field(default_factory=dict)
    next_id: int = 1


class ResearchTreeNode(_CamelModel):
    """One ticket in the cascade of work unlocked by finishing its parent."""

    id: str
    title: str
    unblocks: list[ResearchTreeNode] = Field(default_factory=list)


class NextTicket(_CamelModel):
    """A ready ticket with its research tree in place of ``blockedBy``."""

    id: str
    title: str
    description: str = ""
    projects: list[str] = Field(default_factory=list)
    status: TicketStatus = TicketStatus.OPEN
    created_at: str
    updated_at: str
    project_id: str | None = None
    research_tree: list[ResearchTreeNode] = Field(default_factory=list)


class TicketCreate(_CamelModel):
    """Input for creating one ticket."""

    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    projects: list[str] = Field(default_factory=list)
    blocked_by: list[str] = Field(default_factory=list)


class TicketUpdate(_CamelModel):
    """Input for updating one ticket; omitted fields are left as they are."""

    ticket_id: str = Field(min_length=1)
    title: str | None = None
    description: str | None = None
    projects: list[str] | None = None
    blocked_by: list[str] | None = None
    status: TicketStatus | None = None

    def changes(self) -> dict[str, object]:
        """Return the fields this update replaces, keyed by attribute name."""
        return self.model_dump(exclude={"ticket_id"}, exclude_none=True)


def dump_model(model: BaseModel) -> dict:
    """Serialize a model to JSON-ready data using the document's camelCase keys."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
