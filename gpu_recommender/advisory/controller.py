"""Hybrid recommender: race the advisory service against a deadline.

The advisory step never raises; it returns an ``AdvisorySuccess`` or an
``AdvisoryFailure`` and the controller matches on that to decide between the
advisory answer and the rule-based selection.  Fields are never merged
between the two.

    Idle ──recommend()──> Racing ──valid answer first──> Resolved(advisory)
                                 └─timeout / failure───> Resolved(rule-based)
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from gpu_recommender.advisory.client import AdvisoryClient
from gpu_recommender.advisory.prompt import build_messages
from gpu_recommender.advisory.response import check_capacity, parse_advice
from gpu_recommender.config import (
    ADVISORY_API_KEY,
    ADVISORY_ENDPOINT,
    ADVISORY_MODEL,
    ADVISORY_TIMEOUT_SECONDS,
)
from gpu_recommender.errors import (
    AdvisoryError,
    AdvisoryTimeout,
    AdvisoryTransportError,
    AdvisoryUnavailable,
)
from gpu_recommender.estimator import estimate_capacity
from gpu_recommender.selector import select
from gpu_recommender.workload import Recommendation, WorkloadParams

logger = logging.getLogger(__name__)

# Any async callable taking chat messages and returning the response text
AdvisoryTransport = Callable[[list[dict]], Awaitable[str]]


@dataclass(frozen=True)
class AdvisorySuccess:
    recommendation: Recommendation


@dataclass(frozen=True)
class AdvisoryFailure:
    error: AdvisoryError

    @property
    def reason(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


AdvisoryOutcome = AdvisorySuccess | AdvisoryFailure


def _discard_result(task: asyncio.Task) -> None:
    """Retrieve a losing task's outcome so it is dropped silently."""
    if not task.cancelled():
        task.exception()


class AdvisoryController:
    """Best-effort advisory recommendation with a deterministic fallback.

    Args:
        transport: Async callable used for the advisory call.  Defaults to an
            ``AdvisoryClient`` built from *api_key*, *endpoint* and *model*.
        api_key: Advisory credential; ``None`` disables the advisory path
            unless a *transport* is given.
        endpoint: Advisory endpoint URL; empty disables the advisory path.
        model: Model identifier sent to the advisory service.
        timeout: Race deadline in seconds.
    """

    def __init__(
        self,
        transport: AdvisoryTransport | None = None,
        *,
        api_key: str | None = ADVISORY_API_KEY,
        endpoint: str | None = ADVISORY_ENDPOINT,
        model: str = ADVISORY_MODEL,
        timeout: float = ADVISORY_TIMEOUT_SECONDS,
    ) -> None:
        if not math.isfinite(timeout) or timeout <= 0:
            raise ValueError(f"timeout must be a positive finite number, got {timeout}")
        self.timeout = timeout
        if transport is None and api_key and endpoint:
            transport = AdvisoryClient(
                api_key, endpoint, model, request_timeout=timeout
            ).complete
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self._transport is not None

    async def consult(self, params: WorkloadParams) -> AdvisoryOutcome:
        """Run the advisory call once and return a typed outcome."""
        if self._transport is None:
            return AdvisoryFailure(AdvisoryUnavailable("No advisory endpoint or credential configured"))

        estimate = estimate_capacity(params)
        messages = build_messages(params)
        try:
            text = await self._transport(messages)
        except AdvisoryError as e:
            return AdvisoryFailure(e)
        except Exception as e:
            # The transport is an external seam; whatever it raises is a transport failure
            return AdvisoryFailure(AdvisoryTransportError(str(e) or type(e).__name__))

        if not isinstance(text, str):
            return AdvisoryFailure(AdvisoryTransportError(f"transport returned {type(text).__name__}"))

        try:
            return AdvisorySuccess(check_capacity(parse_advice(text), estimate))
        except AdvisoryError as e:
            return AdvisoryFailure(e)

    async def race(self, params: WorkloadParams) -> AdvisoryOutcome:
        """Run the advisory call against the deadline; the first to settle decides."""
        advisory = asyncio.create_task(self.consult(params), name="advisory-call")
        deadline = asyncio.create_task(asyncio.sleep(self.timeout), name="advisory-deadline")

        try:
            done, _ = await asyncio.wait({advisory, deadline}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            # Also runs when the caller is cancelled mid-race
            for task in (advisory, deadline):
                if not task.done():
                    task.add_done_callback(_discard_result)
                    task.cancel()

        if advisory in done:
            return advisory.result()
        return AdvisoryFailure(AdvisoryTimeout(self.timeout))

    async def recommend(self, params: WorkloadParams) -> Recommendation:
        """Return an advisory recommendation if one arrives in time, else a rule-based one."""
        estimate = estimate_capacity(params)

        if not self.is_configured:
            logger.info("Advisory service not configured; using rule-based selection")
            return select(estimate, params)

        outcome = await self.race(params)
        if isinstance(outcome, AdvisorySuccess):
            recommendation = outcome.recommendation
            logger.info(
                "Advisory recommendation: %d x %s",
                recommendation.quantity, recommendation.accelerator_id,
            )
            return recommendation

        logger.warning("Advisory recommendation failed (%s); using rule-based selection", outcome.reason)
        return select(estimate, params).model_copy(update={"fallback_reason": outcome.reason})


def recommend(params: WorkloadParams, controller: AdvisoryController | None = None) -> Recommendation:
    """Synchronous entry point for the form layer.

    Runs its own event loop, so it must not be called from inside a running
    loop; async callers use ``AdvisoryController.recommend`` directly.

    Raises:
        InvalidParameter: Only from constructing or validating *params*;
            advisory failures never propagate.
    """
    controller = controller or AdvisoryController()
    return asyncio.run(controller.recommend(params))
