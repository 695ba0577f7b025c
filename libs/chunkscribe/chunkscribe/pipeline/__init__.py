"""Pipeline orchestration.

This package is imported by pipeline stages for type hints. Keep imports lazy to
avoid circular-import issues between `chunkscribe.pipeline` and `chunkscribe.stages`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from chunkscribe.pipeline.concurrency import AdmissionGate
    from chunkscribe.pipeline.orchestrator import PipelineOrchestrator

__all__ = ["AdmissionGate", "PipelineOrchestrator"]


def __getattr__(name: str) -> Any:
    if name == "AdmissionGate":
        from chunkscribe.pipeline.concurrency import AdmissionGate

        return AdmissionGate
    if name == "PipelineOrchestrator":
        from chunkscribe.pipeline.orchestrator import PipelineOrchestrator

        return PipelineOrchestrator
    raise AttributeError(name)
