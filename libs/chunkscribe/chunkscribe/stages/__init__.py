"""Pipeline stages."""

from chunkscribe.stages.base import Stage
from chunkscribe.stages.merge import MergeStage
from chunkscribe.stages.split import SplitStage
from chunkscribe.stages.transcribe import TranscribeStage

__all__ = ["MergeStage", "SplitStage", "Stage", "TranscribeStage"]
