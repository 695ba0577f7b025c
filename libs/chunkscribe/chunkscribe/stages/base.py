"""Stage abstractions for pipeline execution."""

from __future__ import annotations

from abc import ABC, abstractmethod

from chunkscribe.pipeline.context import PipelineContext


class Stage(ABC):
    """One step of the per-file pipeline."""

    name: str

    @abstractmethod
    async def execute(self, context: PipelineContext) -> PipelineContext:
        """Run the stage and return the updated context."""

    @abstractmethod
    def validate_input(self, context: PipelineContext) -> bool:
        """Check that the context carries what the stage needs."""
