"""
The three attribute engines, loaded concurrently and usable only as a whole.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Iterator, Mapping

from core.errors import LoadFailureReason, ModelLoadFailure, ModelsNotReady

if TYPE_CHECKING:
    from engines.base import InferenceEngine

logger = logging.getLogger(__name__)


class ModelStatus(str, Enum):
    PENDING = "pending"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ModelSet:
    def __init__(self, engines: Mapping[str, InferenceEngine]) -> None:
        self._engines: dict[str, InferenceEngine] = dict(engines)
        self._status = ModelStatus.PENDING
        self._error: ModelLoadFailure | None = None
        self._load_task: asyncio.Future | None = None
        self.load_durations_ms: dict[str, float] = {}

    @property
    def status(self) -> ModelStatus:
        return self._status

    @property
    def ready(self) -> bool:
        return self._status is ModelStatus.READY

    @property
    def error(self) -> ModelLoadFailure | None:
        return self._error

    def __getitem__(self, attribute: str) -> InferenceEngine:
        return self._engines[attribute]

    def __iter__(self) -> Iterator[str]:
        return iter(self._engines)

    def __len__(self) -> int:
        return len(self._engines)

    def input_shapes(self) -> dict[str, tuple[int, ...]]:
        return {a: e.input_shape for a, e in self._engines.items()}

    def require_ready(self) -> None:
        if not self.ready:
            raise ModelsNotReady(f"model set is {self._status.value}")

    async def _load_one(self, attribute: str, engine: InferenceEngine) -> None:
        started = time.perf_counter()
        await asyncio.to_thread(engine.load)
        self.load_durations_ms[attribute] = (time.perf_counter() - started) * 1000.0

    async def load(self) -> None:
        """
        Load every engine concurrently. Any failure marks the whole set FAILED
        and re-raises the first ModelLoadFailure. Can be called again after a
        failure; not retried automatically.

        A call made while a load is already running waits for that load and
        shares its outcome.
        """
        if self._status is ModelStatus.READY:
            return
        if self._load_task is None or self._load_task.done():
            self._status = ModelStatus.LOADING
            self._error = None
            self.load_durations_ms = {}
            self._load_task = asyncio.ensure_future(self._load_all())
        # Cancelling one waiter leaves the shared load running
        await asyncio.shield(self._load_task)

    async def _load_all(self) -> None:
        attributes = list(self._engines)
        logger.info("Loading models: %s", ", ".join(attributes))
        outcomes = await asyncio.gather(
            *(self._load_one(a, self._engines[a]) for a in attributes),
            return_exceptions=True,
        )
        failures: list[ModelLoadFailure] = []
        for attribute, outcome in zip(attributes, outcomes):
            if isinstance(outcome, ModelLoadFailure):
                failures.append(outcome)
            elif isinstance(outcome, Exception):
                failures.append(
                    ModelLoadFailure(attribute, LoadFailureReason.MALFORMED, str(outcome))
                )
            elif isinstance(outcome, BaseException):
                self._fail(None)
                raise outcome
        if failures:
            for failure in failures:
                logger.error("Model load failed: %s", failure)
            self._fail(failures[0])
            raise failures[0]
        self._status = ModelStatus.READY
        logger.info(
            "All models loaded (%s)",
            ", ".join(f"{a}={ms:.0f}ms" for a, ms in self.load_durations_ms.items()),
        )

    def _fail(self, error: ModelLoadFailure | None) -> None:
        # No partial-model operation: drop whatever did load
        for engine in self._engines.values():
            engine.close()
        self._status = ModelStatus.FAILED
        self._error = error

    def close(self) -> None:
        for engine in self._engines.values():
            engine.close()
        self._status = ModelStatus.PENDING
