from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from image_optimizer.core.settings import DEFAULT_OPTIMIZATION_API
from image_optimizer.schemas.contracts import OptimizationRequest, OptimizationResponse

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """The optimization service could not be reached or answered with an error status."""


class OptimizationClient(ABC):
    @abstractmethod
    def process(self, request: OptimizationRequest) -> OptimizationResponse:
        raise NotImplementedError


class ReSmushClient(OptimizationClient):
    """Client for reSmush.it style services: ``GET <endpoint>?img=<image url>`` answering JSON.

    A successful answer looks like ``{"src": ..., "dest": ..., "src_size": ..., "dest_size": ...}``,
    a failure like ``{"error": 403, "error_long": "..."}``. When ``dest`` points at the optimized
    file it is downloaded in the same call so the response carries the bytes.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout_s: float = 60,
        user_agent: str = "ImageOptimizationJob/1.0",
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.endpoint = endpoint or DEFAULT_OPTIMIZATION_API
        self.timeout_s = timeout_s
        self.user_agent = user_agent
        self.transport = transport

    def build_url(self, image_url: str) -> str:
        return str(httpx.URL(self.endpoint).copy_add_param("img", image_url))

    def process(self, request: OptimizationRequest) -> OptimizationResponse:
        try:
            body = self._get(self.build_url(request.image_url)).text
        except TransportError as exc:
            return OptimizationResponse.failure(request.image_url, str(exc))

        if not body.strip():
            return OptimizationResponse(successful=True, original_url=request.image_url)

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as exc:
            return OptimizationResponse.failure(request.image_url, f"Invalid JSON from optimization service: {exc}")
        if not isinstance(payload, dict):
            return OptimizationResponse.failure(request.image_url, "Unexpected response from optimization service")

        try:
            return self._from_payload(request, payload)
        except (ValidationError, TypeError, ValueError) as exc:
            logger.warning("Malformed answer for %s: %s", request.image_url, payload)
            return OptimizationResponse.failure(request.image_url, f"Malformed response from optimization service: {exc}")

    def _from_payload(self, request: OptimizationRequest, payload: dict[str, Any]) -> OptimizationResponse:
        original_url = payload.get("src") or request.image_url
        if payload.get("error"):
            message = payload.get("error_long") or f"Optimization service error {payload['error']}"
            return OptimizationResponse.failure(original_url, str(message))

        original_size = _as_int(payload.get("src_size"))
        optimized_size = _as_int(payload.get("dest_size"))
        optimized_image: Optional[bytes] = None
        dest = payload.get("dest")
        if dest and optimized_size > 0:
            if not isinstance(dest, str):
                raise TypeError(f"dest must be a url, got {dest!r}")
            try:
                optimized_image = self._get(dest).content
            except TransportError as exc:
                return OptimizationResponse.failure(original_url, f"Failed to download optimized image: {exc}")
            if not optimized_image:
                return OptimizationResponse.failure(original_url, "Optimized image download was empty")

        return OptimizationResponse(
            successful=True,
            original_url=original_url,
            original_size=original_size,
            optimized_size=optimized_size,
            optimized_image=optimized_image,
        )

    def _get(self, url: str) -> httpx.Response:
        try:
            with httpx.Client(
                timeout=self.timeout_s,
                headers={"User-Agent": self.user_agent},
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                resp = client.get(url)
                resp.raise_for_status()
                return resp
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(str(exc)) from exc
        except ValueError as exc:
            raise TransportError(f"Unusable url {url!r}: {exc}") from exc


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0
