"""
Knowledge Base Schemas

Query: immutable input to one pipeline invocation.
KnowledgeBaseItem: a stored chunk of the filing, owned by the vector store.

Items are written by the ingestion flow with camelCase keys
(tenantId, userId, categoryId); both spellings are accepted here.
"""

from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidInput


@dataclass(frozen=True)
class Query:
    """A scoped knowledge base question"""
    tenant_id: str
    user_id: str
    category_id: Optional[str]  # None = unscoped
    prompt_text: str
    similarity_threshold: float

    def validate(self) -> "Query":
        """Raise InvalidInput if the query cannot be searched."""
        if not self.tenant_id or not self.tenant_id.strip():
            raise InvalidInput("tenant_id is required")
        if not self.user_id or not self.user_id.strip():
            raise InvalidInput("user_id is required")
        if not self.prompt_text or not self.prompt_text.strip():
            raise InvalidInput("Prompt text cannot be empty")
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise InvalidInput(
                f"similarity_threshold must be within [0, 1], got {self.similarity_threshold}"
            )
        return self

    @property
    def cache_key(self) -> tuple:
        """Partition for cached answers: scope plus threshold, since both shape the retrieved set."""
        return (self.tenant_id, self.user_id, self.category_id, self.similarity_threshold)


class KnowledgeBaseItem(BaseModel):
    """A single knowledge base entry as stored alongside its vector"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    tenant_id: str = Field(default="", alias="tenantId")
    user_id: str = Field(default="", alias="userId")
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    title: str = "Untitled"
    text: str = ""
    embedding: List[float] = Field(default_factory=list, alias="vectors")

    def in_scope(self, tenant_id: str, user_id: str, category_id: Optional[str]) -> bool:
        """Tenant and user must match; category matches or either side is unscoped."""
        if self.tenant_id != tenant_id or self.user_id != user_id:
            return False
        if not category_id or not self.category_id:
            return True
        return self.category_id == category_id

    def as_context(self, max_chars: int = 4000) -> str:
        """Render the item as grounding context for a completion prompt."""
        body = self.text[:max_chars]
        return f"Title: {self.title}\nSource ID: {self.id}\n\n{body}"
