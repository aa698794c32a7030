from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable

from gatekeeper.errors import ScreeningFailure
from gatekeeper.interfaces import ProgressCallback, ScreeningService
from gatekeeper.types import ScreeningResult, parse_screening_result

logger = logging.getLogger(__name__)

PULSE_START = 10.0
PULSE_CEILING = 90.0
PULSE_MAX_STEP = 15.0


class ProgressPulse:
    """Cosmetic progress for an in-flight screening call.

    The value carries no information about the real call; it only moves so
    the applicant sees activity.
    """

    def __init__(
        self,
        on_progress: ProgressCallback,
        *,
        interval_sec: float = 0.8,
        rng: Callable[[], float] | None = None,
    ):
        self.on_progress = on_progress
        self.interval_sec = interval_sec
        self.rng = rng or random.random
        self.value = 0.0
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self.value = PULSE_START
        self.on_progress(self.value)
        self._task = asyncio.create_task(self._run())

    def step(self) -> float:
        proposed = self.value + self.rng() * PULSE_MAX_STEP
        if proposed < PULSE_CEILING:
            self.value = proposed
            self.on_progress(self.value)
        return self.value

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_sec)
            self.step()


class ScreeningOrchestrator:
    def __init__(
        self,
        service: ScreeningService,
        *,
        timeout_sec: float = 45.0,
        pulse_interval_sec: float = 0.8,
        rng: Callable[[], float] | None = None,
    ):
        self.service = service
        self.timeout_sec = timeout_sec
        self.pulse_interval_sec = pulse_interval_sec
        self.rng = rng

    async def run(
        self,
        resume_url: str,
        job_description: str,
        on_progress: ProgressCallback,
    ) -> ScreeningResult:
        pulse = ProgressPulse(on_progress, interval_sec=self.pulse_interval_sec, rng=self.rng)
        pulse.start()
        try:
            raw = await asyncio.wait_for(
                self.service.screen(resume_url, job_description),
                timeout=self.timeout_sec,
            )
            result = parse_screening_result(raw)
        except ScreeningFailure as exc:
            logger.warning("Screening returned an unusable result: %s", exc)
            raise
        except TimeoutError as exc:
            logger.warning("Screening timed out after %ss", self.timeout_sec)
            raise ScreeningFailure(f"screening timed out after {self.timeout_sec}s") from exc
        except Exception as exc:
            logger.warning("Screening call failed: %s", exc)
            raise ScreeningFailure(str(exc) or exc.__class__.__name__) from exc
        finally:
            await pulse.stop()

        on_progress(100.0)
        logger.info("Screening completed score=%s verdict=%s", result.score, result.verdict)
        return result
