"""Gemini / Veo REST backend built on requests."""

from __future__ import annotations

import random
import time
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import requests

from ..errors import ErrorKind, ProviderError, classify
from ..generation.models import ImageInput, PollableOperation, VideoReference
from ..util.logging import get_logger, register_secret

logger = get_logger(__name__)

REDIRECT_STATUSES = {301, 302, 303, 307, 308}


class GeminiBackend:
    """Call the Generative Language API for image, text and video generation."""

    name = "gemini"

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    GENERATE_PATH = "/models/{model}:generateContent"
    VIDEO_PATH = "/models/{model}:predictLongRunning"

    RETRY_STATUSES = {429, 500, 502, 503, 504}
    MAX_REDIRECTS = 5

    def __init__(self, api_key: str, *, timeout: float = 120.0, session: Optional[requests.Session] = None) -> None:
        if not api_key:
            raise ValueError("GeminiBackend requires an API key.")
        self.api_key = api_key
        register_secret(api_key)
        self.timeout = timeout
        self.http = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

    # ---------- synchronous content ----------

    def generate_content(
        self,
        model: str,
        contents: List[Dict[str, Any]],
        *,
        config: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"contents": contents}
        config = dict(config or {})
        system_instruction = config.pop("systemInstruction", None)
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if config:
            payload["generationConfig"] = config

        url = f"{self.BASE_URL}{self.GENERATE_PATH.format(model=model)}"
        logger.info(
            "Submitting generateContent request",
            extra={"event": "gemini.generate", "model": model, "num_contents": len(contents)},
        )
        response = self._request_with_retry("post", url, json=payload, timeout=self.timeout)
        return self._json(response)

    # ---------- long-running video ----------

    def start_video(
        self,
        model: str,
        prompt: str,
        references: List[ImageInput],
        *,
        aspect_ratio: str,
        number_of_videos: int = 1,
    ) -> PollableOperation:
        instance: Dict[str, Any] = {"prompt": prompt}
        if references:
            instance["referenceImages"] = [
                {
                    "image": {"bytesBase64Encoded": ref.to_base64(), "mimeType": ref.mime_type},
                    "referenceType": "asset",
                }
                for ref in references
            ]
        payload = {
            "instances": [instance],
            "parameters": {"aspectRatio": aspect_ratio, "sampleCount": number_of_videos},
        }

        url = f"{self.BASE_URL}{self.VIDEO_PATH.format(model=model)}"
        logger.info(
            "Submitting video generation job",
            extra={"event": "veo.submit", "model": model, "num_references": len(references)},
        )
        response = self._request_with_retry("post", url, json=payload, timeout=self.timeout)
        body = self._json(response)
        name = body.get("name")
        if not name:
            raise ProviderError(ErrorKind.GENERIC, f"Unexpected video start response: {body}")
        logger.info("Video job created", extra={"event": "veo.created", "operation": name})
        return self._to_operation(body)

    def get_video_operation(self, operation: PollableOperation) -> PollableOperation:
        url = f"{self.BASE_URL}/{operation.name}"
        response = self._request_with_retry("get", url, timeout=30)
        body = self._json(response)
        refreshed = self._to_operation(body, poll_count=operation.poll_count)
        if refreshed.error:
            message = str(refreshed.error.get("message") or refreshed.error)
            code = refreshed.error.get("code")
            status = code if isinstance(code, int) else None
            raise ProviderError(classify(status, message), message, status_code=status)
        return refreshed

    @staticmethod
    def _to_operation(body: Dict[str, Any], poll_count: int = 0) -> PollableOperation:
        return PollableOperation(
            name=str(body.get("name", "")),
            done=bool(body.get("done", False)),
            poll_count=poll_count,
            result=body.get("response"),
            error=body.get("error"),
        )

    def download_video(self, reference: VideoReference, destination: Path) -> Path:
        """Write a finished video to ``destination`` from inline bytes or its URI."""
        destination.parent.mkdir(parents=True, exist_ok=True)
        if reference.video_bytes:
            destination.write_bytes(reference.video_bytes)
            return destination
        if not reference.uri:
            raise ProviderError(ErrorKind.EMPTY_RESULT, "Video reference has neither bytes nor a URI.")

        logger.info("Downloading generated video", extra={"event": "veo.download"})
        # Redirects are followed here so the key header is re-decided for each hop.
        url = reference.uri
        for _ in range(self.MAX_REDIRECTS + 1):
            resp = self._request_with_retry("get", url, timeout=180, stream=True, allow_redirects=False)
            location = resp.headers.get("Location") if resp.status_code in REDIRECT_STATUSES else None
            if not location:
                break
            resp.close()
            url = urljoin(url, location)
        else:
            raise ProviderError(ErrorKind.GENERIC, "Too many redirects while downloading the video.")

        with resp:
            with destination.open("wb") as handle:
                for chunk in resp.iter_content(chunk_size=8192):
                    if chunk:
                        handle.write(chunk)
        return destination

    # ---------- transport ----------

    def _request_with_retry(
        self,
        method: str,
        url: str,
        *,
        max_attempts: int = 4,
        **kwargs: Any,
    ) -> requests.Response:
        """Perform an HTTP request with exponential backoff on retryable failures."""
        delay = 1.0
        last_error: Exception | None = None
        for attempt in range(1, max_attempts + 1):
            try:
                # Only provider endpoints get the key; result URIs may live on other hosts.
                headers = self._headers() if url.startswith(self.BASE_URL + "/") else None
                response = self.http.request(method, url, headers=headers, **kwargs)
            except requests.RequestException as exc:
                last_error = exc
                if attempt == max_attempts:
                    raise ProviderError(classify(None, str(exc)), f"HTTP request to provider failed: {exc}") from exc
                time.sleep(delay + random.uniform(0, 0.25))
                delay *= 2
                continue

            if response.ok:
                return response

            if response.status_code in self.RETRY_STATUSES and attempt < max_attempts:
                response.close()
                time.sleep(delay + random.uniform(0, 0.25))
                delay *= 2
                continue

            message = self._error_message(response)
            status = response.status_code
            response.close()
            raise ProviderError(classify(status, message), f"{status} {message}", status_code=status)

        raise ProviderError(ErrorKind.GENERIC, f"HTTP {method.upper()} failed after {max_attempts} attempts") from last_error

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(ErrorKind.GENERIC, "Provider response was not valid JSON.") from exc

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            try:
                return response.text.strip() or response.reason or "Unknown error"
            except Exception:  # noqa: BLE001
                return "<unable to read response>"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return str(body)


__all__ = ["GeminiBackend"]
