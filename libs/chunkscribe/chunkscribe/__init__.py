"""chunkscribe: segmented, rate-limited transcription of long recordings."""

__version__ = "0.1.0"
