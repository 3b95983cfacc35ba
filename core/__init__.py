# Core: capture, sampling, preprocessing, orchestration, diagnostics

from core.buffers import BufferRegistry, Tensor
from core.capture import Facing, VideoCaptureSource
from core.model_set import ModelSet, ModelStatus
from core.models import Frame, PredictionResult, PredictionSet
from core.orchestrator import PipelineState, PredictionOrchestrator
from core.preprocess import preprocess
from core.sampler import FrameSampler

__all__ = [
    "BufferRegistry",
    "Tensor",
    "Facing",
    "VideoCaptureSource",
    "ModelSet",
    "ModelStatus",
    "Frame",
    "PredictionResult",
    "PredictionSet",
    "PipelineState",
    "PredictionOrchestrator",
    "preprocess",
    "FrameSampler",
]
