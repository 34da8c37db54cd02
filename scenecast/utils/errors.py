"""Error taxonomy for the media assembly pipeline

Every stage raises one of these and lets it bubble up to the orchestrator,
which is the only place that catches them (once) to mark the project failed.
"""

from typing import List, Optional


class PipelineError(Exception):
    """Base class for all pipeline failures"""


class ValidationError(PipelineError):
    """Project data is missing or malformed; raised before any external call"""


class UnknownModelError(ValidationError):
    """Requested generation model is not registered"""

    def __init__(self, model_id: str, kind: str = "video"):
        self.model_id = model_id
        self.kind = kind
        super().__init__(f"No {kind} provider registered for model '{model_id}'")


class ProviderError(PipelineError):
    """Generation or TTS provider reported a failure"""

    def __init__(self, message: str, scene_order: Optional[int] = None,
                 reason: Optional[str] = None):
        self.scene_order = scene_order
        self.reason = reason
        super().__init__(message)


class PollTimeoutError(PipelineError, TimeoutError):
    """Polling attempts were exhausted with jobs still incomplete"""

    def __init__(self, message: str, incomplete: Optional[List[str]] = None):
        self.incomplete = incomplete or []
        super().__init__(message)


class MediaProcessingError(PipelineError):
    """ffmpeg / ffprobe exited with a non-zero status"""

    def __init__(self, message: str, command: Optional[List[str]] = None,
                 stderr: str = ""):
        self.command = command or []
        self.stderr = stderr
        super().__init__(message)


class StorageError(PipelineError):
    """Upload, download or delete against durable storage failed"""
