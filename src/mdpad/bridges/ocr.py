"""OCR bridge: send an image to a recognition service and return its text.

Two backends are supported. ``HttpOcrClient`` posts the file to a plain HTTP
endpoint as a multipart upload. ``VisionOcrClient`` asks an OpenAI-compatible
vision model to transcribe the image.
"""

import base64
import logging
import time
from pathlib import Path
from typing import Any, List, Optional, Protocol, Union, cast

import httpx
from openai import APIError, AsyncOpenAI
from openai.types.chat import ChatCompletionMessageParam

from mdpad.bridges.files import get_mime_type
from mdpad.errors import OcrError
from mdpad.models.messages import OcrResult

log = logging.getLogger(__name__)

DEFAULT_OCR_URL = "http://127.0.0.1:5000/ocr"

OCR_SYSTEM_PROMPT = """You are an OCR engine. Transcribe all text visible in the image.

- Keep the reading order and line breaks of the original
- Use Markdown headings, lists and tables where the layout clearly shows them
- Output ONLY the transcribed text, with no preamble or code fences
"""


class OcrClient(Protocol):
    async def recognize(self, path: Union[str, Path]) -> OcrResult: ...


def clean_markdown_output(text: str) -> str:
    """Remove a wrapping ```markdown fence from model output"""
    lines = text.strip().split("\n")
    if lines and lines[0].strip() in ("```markdown", "```"):
        lines = lines[1:]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    return "\n".join(lines)


def extract_text(payload: Any) -> str:
    """Pull the recognized text out of a service reply.

    Accepts ``{"full_text": ...}``, ``{"fullText": ...}``, ``{"text": ...}``
    or ``{"results": [{"text": ...}, ...]}`` (joined with newlines).
    """
    if isinstance(payload, dict):
        if payload.get("success") is False:
            raise OcrError(f"OCR service reported failure: {payload.get('error', 'unknown error')}")
        for key in ("full_text", "fullText", "text"):
            value = payload.get(key)
            if isinstance(value, str):
                return value
        results = payload.get("results")
        if isinstance(results, list):
            parts = [
                item.get("text", "") if isinstance(item, dict) else str(item)
                for item in results
            ]
            return "\n".join(part for part in parts if part)
    raise OcrError("OCR service reply did not contain any text")


def _read_image(path: Union[str, Path]) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise OcrError(f"Cannot read {path}: {e}") from e


class HttpOcrClient:
    """Multipart upload to an HTTP OCR endpoint."""

    def __init__(
        self,
        url: str = DEFAULT_OCR_URL,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            url: Endpoint accepting a multipart ``file`` field
            timeout: Seconds to wait for the whole request
            transport: Custom httpx transport, used by tests
        """
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def recognize(self, path: Union[str, Path]) -> OcrResult:
        image_bytes = _read_image(path)
        name = Path(path).name
        files = {"file": (name, image_bytes, get_mime_type(path))}

        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.url, files=files)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            log.error(f"OCR request for {name} failed: HTTP {e.response.status_code}")
            raise OcrError(f"OCR service returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            log.error(f"OCR request for {name} failed: {e}")
            raise OcrError(f"OCR service unreachable at {self.url}: {e}") from e
        except ValueError as e:
            raise OcrError("OCR service returned invalid JSON") from e

        elapsed_ms = (time.perf_counter() - start) * 1000
        text = extract_text(payload)
        if isinstance(payload, dict) and isinstance(payload.get("elapsed_ms"), (int, float)):
            elapsed_ms = float(payload["elapsed_ms"])

        log.info(f"OCR of {name}: {len(text)} chars in {elapsed_ms:.0f} ms")
        return OcrResult(full_text=text, elapsed_ms=elapsed_ms)


class VisionOcrClient:
    """Transcription through an OpenAI-compatible vision model."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model_name: str,
        max_tokens: int = 8000,
        temperature: float = 0.1,
    ):
        self.client = client
        self.model_name = model_name
        self.max_tokens = max_tokens
        self.temperature = temperature

    def build_messages(self, path: Union[str, Path], image_bytes: bytes) -> List[dict]:
        encoded = base64.b64encode(image_bytes).decode("utf-8")
        return [
            {"role": "system", "content": OCR_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": f"Transcribe {Path(path).name}:"},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{get_mime_type(path)};base64,{encoded}"},
                    },
                ],
            },
        ]

    async def recognize(self, path: Union[str, Path]) -> OcrResult:
        image_bytes = _read_image(path)
        start = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=cast(
                    List[ChatCompletionMessageParam],
                    self.build_messages(path, image_bytes),
                ),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except APIError as e:
            log.error(f"Vision OCR for {path} failed: {e}")
            raise OcrError(f"Vision model request failed: {e}") from e

        if not response.choices or response.choices[0].message.content is None:
            raise OcrError("Vision model returned no text")

        text = clean_markdown_output(response.choices[0].message.content)
        elapsed_ms = (time.perf_counter() - start) * 1000
        log.info(f"Vision OCR of {Path(path).name}: {len(text)} chars in {elapsed_ms:.0f} ms")
        return OcrResult(full_text=text, elapsed_ms=elapsed_ms)
