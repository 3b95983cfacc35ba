"""
Closed error taxonomy for the capture / inference pipeline.

Every failure the pipeline can surface derives from PipelineError and carries an
ErrorKind, so the UI never has to inspect exception names.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    DEVICE_UNAVAILABLE = "device_unavailable"
    INSECURE_CONTEXT = "insecure_context"
    MODEL_LOAD_FAILURE = "model_load_failure"
    MODELS_NOT_READY = "models_not_ready"
    SOURCE_NOT_READY = "source_not_ready"
    PREPROCESS_FAILURE = "preprocess_failure"
    INFERENCE_FAILURE = "inference_failure"
    EMPTY_LOG = "empty_log"
    CYCLE_IN_PROGRESS = "cycle_in_progress"


class LoadFailureReason(str, Enum):
    NOT_FOUND = "not_found"
    NETWORK_ERROR = "network_error"
    MALFORMED = "malformed"


class PipelineError(Exception):
    """Base class; subclasses set `kind` and a user-facing message."""

    kind: ErrorKind
    user_text: str = "Unexpected error."

    def user_message(self) -> str:
        detail = str(self)
        if detail and detail != self.user_text:
            return f"{self.user_text} ({detail})"
        return self.user_text


class PermissionDenied(PipelineError):
    kind = ErrorKind.PERMISSION_DENIED
    user_text = "Camera access failed: permission denied. Allow camera access and retry."


class DeviceUnavailable(PipelineError):
    kind = ErrorKind.DEVICE_UNAVAILABLE
    user_text = "Camera access failed: no camera found. Connect a camera and retry."


class InsecureContext(PipelineError):
    kind = ErrorKind.INSECURE_CONTEXT
    user_text = "Camera access requires a secure stream (https/rtsps) for remote hosts."


class ModelLoadFailure(PipelineError):
    kind = ErrorKind.MODEL_LOAD_FAILURE
    user_text = "Failed to load AI models."

    def __init__(self, attribute: str, reason: LoadFailureReason, detail: str = "") -> None:
        self.attribute = attribute
        self.reason = reason
        message = f"{attribute} model: {reason.value}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ModelsNotReady(PipelineError):
    kind = ErrorKind.MODELS_NOT_READY
    user_text = "Models are still loading. Please wait..."


class SourceNotReady(PipelineError):
    kind = ErrorKind.SOURCE_NOT_READY
    user_text = "Camera is not ready. Please wait for the camera to load."


class PreprocessFailure(PipelineError):
    kind = ErrorKind.PREPROCESS_FAILURE
    user_text = "Prediction failed while preparing the frame."


class InferenceFailure(PipelineError):
    kind = ErrorKind.INFERENCE_FAILURE
    user_text = "Prediction failed."

    def __init__(self, attribute: str, detail: str = "") -> None:
        self.attribute = attribute
        super().__init__(f"{attribute}: {detail}" if detail else attribute)


class EmptyLog(PipelineError):
    kind = ErrorKind.EMPTY_LOG
    user_text = "No predictions recorded yet. Run a prediction before exporting."


class CycleInProgress(PipelineError):
    kind = ErrorKind.CYCLE_IN_PROGRESS
    user_text = "A prediction is already running."
