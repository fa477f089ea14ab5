import asyncio
import logging

import httpx

from rapid_assessment.core.config import settings
from rapid_assessment.core.exceptions import ReportGenerationError

logger = logging.getLogger(__name__)

# upstream status -> (code, message); these reach the caller unchanged
_PASSTHROUGH = {
    401: ("LLM_UNAUTHORIZED", "LLM service rejected the configured credentials"),
    403: ("LLM_FORBIDDEN", "Access to the LLM service was denied"),
    429: ("LLM_THROTTLED", "Request throttled. Please try again later"),
}


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.LLM_TIMEOUT_SEC)


def _retryable(status: int) -> bool:
    return status == 429 or status >= 500


def map_status_error(exc: httpx.HTTPStatusError) -> ReportGenerationError:
    status = exc.response.status_code
    if status in _PASSTHROUGH:
        code, message = _PASSTHROUGH[status]
        return ReportGenerationError(message, status_code=status, code=code)
    return ReportGenerationError(f"LLM service returned HTTP {status}", status_code=502, code="LLM_BAD_RESPONSE")


async def complete(prompt: str, max_tokens: int = 4000) -> dict:
    # Posts the prompt to LLM_HTTP_URL; the service answers {"text": ..., "model": ...}
    url = settings.LLM_HTTP_URL
    if not url:
        raise ReportGenerationError("LLM_HTTP_URL is not configured", status_code=500, code="LLM_NOT_CONFIGURED")
    headers = {}
    if settings.LLM_API_KEY:
        headers["Authorization"] = f"Bearer {settings.LLM_API_KEY}"

    retries = max(0, settings.LLM_RETRIES)
    cause = failure = None
    async with _client() as client:
        for attempt in range(retries + 1):
            try:
                resp = await client.post(str(url), json={"prompt": prompt, "max_tokens": max_tokens}, headers=headers)
                resp.raise_for_status()
                body = resp.json()
            except httpx.HTTPStatusError as exc:
                cause, failure = exc, map_status_error(exc)
                # client errors will not improve on retry
                if not _retryable(exc.response.status_code):
                    logger.error("LLM http call rejected: %s", exc)
                    raise failure from exc
            except httpx.TransportError as exc:
                cause = exc
                failure = ReportGenerationError("LLM service is unreachable", status_code=503, code="LLM_UNREACHABLE")
            except ValueError as exc:
                raise ReportGenerationError("LLM service returned invalid JSON", status_code=502,
                                            code="LLM_BAD_RESPONSE") from exc
            else:
                if not isinstance(body, dict):
                    raise ReportGenerationError("LLM service returned an unexpected payload", status_code=502,
                                                code="LLM_BAD_RESPONSE")
                return {"text": body.get("text", ""), "model": body.get("model", "http")}

            if attempt < retries:
                delay = settings.LLM_BACKOFF_FACTOR * (attempt + 1)
                logger.warning("LLM http call failed (%s); retry %d in %.2fs", cause, attempt + 1, delay)
                await asyncio.sleep(delay)

    logger.error("LLM http call failed after %d attempts: %s", retries + 1, cause)
    raise failure from cause
