from __future__ import annotations

from .comments import NormalizedComment, collect_comments
from .config import ProposalsConfig
from .context import compile_context
from .resources import Catalog, ResourceRef


class Conversation:
    """A resource seen as one comment stream plus a descriptive header."""

    def __init__(
        self,
        resource_type: str,
        resource_id: int | None,
        catalog: Catalog,
        proposals: ProposalsConfig | None = None,
    ) -> None:
        self.ref = ResourceRef(resource_type, resource_id)
        self.catalog = catalog
        self.proposals = proposals

    def comments(self) -> list[NormalizedComment]:
        return collect_comments(self.catalog, self.ref)

    def compile_context(self, additional_context: str | None = None) -> str:
        return compile_context(
            self.catalog,
            self.ref,
            proposals=self.proposals,
            additional_context=additional_context,
        )
