"""
Prediction orchestrator: one cycle = sample -> preprocess x3 -> infer x3
(concurrently) -> interpret, with every buffer of the cycle released on the way out.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from core.buffers import BufferRegistry, Tensor
from core.errors import CycleInProgress, InferenceFailure, PipelineError, PreprocessFailure
from core.models import ATTRIBUTES, CycleTimings, DiagnosticsRecord, PredictionResult, PredictionSet
from core.preprocess import preprocess
from core.sampler import FrameSampler, FrameSource

if TYPE_CHECKING:
    from core.diagnostics import DiagnosticsRecorder
    from core.model_set import ModelSet

logger = logging.getLogger(__name__)

# Fixed by the models' output convention: probability > threshold -> positive label
DECISION_THRESHOLD = 0.5

# attribute -> (label when probability > threshold, label otherwise)
LABELS: dict[str, tuple[str, str]] = {
    "age": ("Elderly", "Adult"),
    "gender": ("Male", "Female"),
    "emotion": ("Sad", "Happy"),
}


class CycleState(str, Enum):
    IDLE = "idle"
    SAMPLING = "sampling"
    PREPROCESSING = "preprocessing"
    INFERRING = "inferring"
    INTERPRETING = "interpreting"
    ERROR = "error"


def interpret(attribute: str, output: np.ndarray) -> PredictionResult:
    """Threshold the first value of a model output. Exactly 0.5 gives the negative label."""
    flat = np.asarray(output).reshape(-1)
    if flat.size == 0:
        raise InferenceFailure(attribute, "empty model output")
    probability = float(flat[0])
    if not math.isfinite(probability) or not 0.0 <= probability <= 1.0:
        raise InferenceFailure(attribute, f"probability out of range: {probability}")
    positive, negative = LABELS[attribute]
    label = positive if probability > DECISION_THRESHOLD else negative
    return PredictionResult(attribute=attribute, probability=probability, label=label)


@dataclass
class PipelineState:
    """Everything a cycle touches, owned by one orchestrator."""

    capture: FrameSource
    models: ModelSet
    registry: BufferRegistry = field(default_factory=BufferRegistry)
    recorder: DiagnosticsRecorder | None = None
    cycle_state: CycleState = CycleState.IDLE
    in_flight: bool = False
    cycles_completed: int = 0
    cycles_failed: int = 0


class PredictionOrchestrator:
    def __init__(self, state: PipelineState, sampler: FrameSampler | None = None) -> None:
        self._state = state
        self._sampler = sampler or FrameSampler()

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def cycle_state(self) -> CycleState:
        return self._state.cycle_state

    @property
    def busy(self) -> bool:
        return self._state.in_flight

    def _transition(self, new_state: CycleState) -> None:
        logger.debug("cycle %s -> %s", self._state.cycle_state.value, new_state.value)
        self._state.cycle_state = new_state

    async def predict(self) -> PredictionSet:
        """
        Run one cycle. Raises CycleInProgress if a cycle is already running,
        ModelsNotReady / SourceNotReady before anything is allocated, and
        PreprocessFailure / InferenceFailure after the cycle's buffers are released.
        """
        state = self._state
        # Checked and set before the first await: a second request is always rejected
        if state.in_flight:
            raise CycleInProgress()
        state.models.require_ready()
        state.in_flight = True
        try:
            prediction = await self._run_cycle()
        except PipelineError as e:
            self._transition(CycleState.ERROR)
            state.cycles_failed += 1
            logger.warning("Prediction cycle failed [%s]: %s", e.kind.value, e)
            raise
        except Exception:
            self._transition(CycleState.ERROR)
            state.cycles_failed += 1
            logger.exception("Prediction cycle failed unexpectedly")
            raise
        finally:
            state.in_flight = False
            self._transition(CycleState.IDLE)
        state.cycles_completed += 1
        if state.recorder is not None:
            state.recorder.record(DiagnosticsRecord.from_prediction(prediction))
        logger.info(
            "Prediction: %s (%.1f ms)",
            ", ".join(f"{r.attribute}={r.label} ({r.probability:.3f})" for r in prediction.results),
            prediction.timings.total_ms,
        )
        return prediction

    async def _run_cycle(self) -> PredictionSet:
        state = self._state
        started = time.perf_counter()

        self._transition(CycleState.SAMPLING)
        frame = self._sampler.sample(state.capture)
        sampled = time.perf_counter()

        with ExitStack() as cleanup:
            self._transition(CycleState.PREPROCESSING)
            inputs: dict[str, Tensor] = {}
            for attribute in ATTRIBUTES:
                side, _, channels = state.models[attribute].input_shape
                try:
                    tensor = preprocess(frame, side, channels == 1, state.registry)
                except PreprocessFailure:
                    raise
                except Exception as e:
                    raise PreprocessFailure(f"{attribute}: {e}") from e
                cleanup.callback(tensor.release)
                inputs[attribute] = tensor
            del frame
            preprocessed = time.perf_counter()

            self._transition(CycleState.INFERRING)
            outputs = await self._infer_all(inputs, cleanup)
            inferred = time.perf_counter()

            self._transition(CycleState.INTERPRETING)
            results = tuple(interpret(a, outputs[a].data) for a in ATTRIBUTES)

        finished = time.perf_counter()
        timings = CycleTimings(
            preprocess_ms=(preprocessed - sampled) * 1000.0,
            inference_ms=(inferred - preprocessed) * 1000.0,
            total_ms=(finished - started) * 1000.0,
        )
        return PredictionSet(results=results, timings=timings)

    async def _infer_all(self, inputs: dict[str, Tensor], cleanup: ExitStack) -> dict[str, Tensor]:
        """Issue all classify calls at once and wait for every one of them."""
        attributes = list(inputs)
        outcomes = await asyncio.gather(
            *(self._classify(a, inputs[a]) for a in attributes),
            return_exceptions=True,
        )
        outputs: dict[str, Tensor] = {}
        failures: list[tuple[str, BaseException]] = []
        for attribute, outcome in zip(attributes, outcomes):
            if isinstance(outcome, Tensor):
                cleanup.callback(outcome.release)
                outputs[attribute] = outcome
            else:
                failures.append((attribute, outcome))
        if not failures:
            return outputs
        attribute, error = failures[0]
        if isinstance(error, InferenceFailure):
            raise error
        if isinstance(error, Exception):
            raise InferenceFailure(attribute, str(error)) from error
        raise error

    async def _classify(self, attribute: str, tensor: Tensor) -> Tensor:
        engine = self._state.models[attribute]
        return await asyncio.to_thread(engine.classify, tensor)
