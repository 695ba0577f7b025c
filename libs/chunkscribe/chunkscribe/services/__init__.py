"""Boundary services that run before or around the pipeline."""

from chunkscribe.services.uploads import JobOptions, suggest_job_options, validate_upload

__all__ = ["JobOptions", "suggest_job_options", "validate_upload"]
