from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import (
    ConfigurationError,
    SolverError,
    SolverInfeasibilityError,
    SolverInfrastructureError,
)
from app.schemas.scheduling import SchedulingRequest, SchedulingResult
from app.services.fallback_dataset import fallback_request

logger = logging.getLogger(__name__)

INFEASIBILITY_PHRASES = (
    "no feasible student timetable",
    "no feasible timetable",
    "no feasible assignment",
)
GENERATE_PATH = "/api/generate"
VALIDATE_PATH = "/api/validate"

Dataset = Literal["real", "mock"]


def should_fallback(message: Any) -> bool:
    if not isinstance(message, str):
        return False
    lowered = message.lower()
    return any(phrase in lowered for phrase in INFEASIBILITY_PHRASES)


def extract_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if value:
                return value if isinstance(value, str) else str(value)
    text = response.text.strip()
    return text or f"HTTP {response.status_code}"


@dataclass
class SolverOutcome:
    result: SchedulingResult
    dataset: Dataset
    submitted_request: SchedulingRequest
    fallback_reason: str | None = None

    @property
    def fallback_used(self) -> bool:
        return self.dataset == "mock"


class SolverClient:
    """HTTP client for the external scheduling engine.

    ``generate`` is a single attempt; ``submit`` layers the one-shot fallback
    on top of it. Both are coroutines so that cancelling the caller aborts the
    outbound request.
    """

    def __init__(
        self,
        base_url: str,
        *,
        generate_timeout: float = 120.0,
        validate_timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ConfigurationError("Scheduling engine URL is not configured")
        self.base_url = base_url.rstrip("/")
        self.generate_timeout = generate_timeout
        self.validate_timeout = validate_timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings, transport: httpx.AsyncBaseTransport | None = None) -> "SolverClient":
        return cls(
            settings.scheduling_engine_url,
            generate_timeout=settings.engine_generate_timeout_seconds,
            validate_timeout=settings.engine_validate_timeout_seconds,
            transport=transport,
        )

    async def _post(self, path: str, payload: dict, timeout: float) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("Scheduling engine timed out after %.0fs (%s)", timeout, url)
            raise SolverInfrastructureError(
                f"Scheduling engine timed out after {timeout:.0f} seconds",
                details={"reason": "timeout", "url": url},
            ) from exc
        except httpx.ConnectError as exc:
            logger.warning("Scheduling engine unreachable at %s: %s", url, exc)
            raise SolverInfrastructureError(
                f"Scheduling engine unreachable: {exc}",
                details={"reason": "connect", "url": url},
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("Transport error talking to scheduling engine at %s: %s", url, exc)
            raise SolverInfrastructureError(
                f"Scheduling engine transport error: {exc}",
                details={"reason": "transport", "url": url},
            ) from exc

        if response.is_success:
            return response

        message = extract_error_message(response)
        if should_fallback(message):
            raise SolverInfeasibilityError(message, details={"engine_status": response.status_code})
        raise SolverError(message, status_code=response.status_code)

    async def generate(self, request: SchedulingRequest) -> SchedulingResult:
        response = await self._post(GENERATE_PATH, request.to_payload(), self.generate_timeout)
        try:
            body = response.json()
        except ValueError as exc:
            raise SolverError("Scheduling engine returned a non-JSON response", status_code=response.status_code) from exc
        if not isinstance(body, dict):
            raise SolverError("Scheduling engine returned an unexpected response shape", status_code=response.status_code)
        try:
            return SchedulingResult.model_validate(body)
        except PydanticValidationError as exc:
            raise SolverError(
                "Scheduling engine returned a malformed timetable",
                status_code=response.status_code,
                details={"errors": exc.errors(include_url=False, include_context=False)},
            ) from exc

    async def submit(self, request: SchedulingRequest) -> SolverOutcome:
        try:
            result = await self.generate(request)
        except SolverInfeasibilityError as original:
            logger.warning("Scheduling engine reported infeasibility (%s); retrying with fallback dataset", original.message)
            substitute = fallback_request()
            try:
                result = await self.generate(substitute)
            except (SolverError, SolverInfeasibilityError, SolverInfrastructureError) as fallback_exc:
                logger.error("Fallback dataset also failed: %s", fallback_exc.message)
                raise SolverInfeasibilityError(
                    f"No feasible timetable for the submitted data ({original.message}); "
                    f"fallback dataset also failed ({fallback_exc.message})",
                    details={
                        "original_error": original.message,
                        "fallback_error": fallback_exc.message,
                        "fallback_category": fallback_exc.category,
                    },
                ) from fallback_exc
            return SolverOutcome(
                result=result,
                dataset="mock",
                submitted_request=substitute,
                fallback_reason=original.message,
            )
        return SolverOutcome(result=result, dataset="real", submitted_request=request)

    async def validate(self, payload: dict) -> Any:
        response = await self._post(VALIDATE_PATH, payload, self.validate_timeout)
        try:
            return response.json()
        except ValueError as exc:
            raise SolverError("Scheduling engine returned a non-JSON validation report", status_code=response.status_code) from exc
