# rapid_assessment/services/llm_adapter.py
"""
Pluggable LLM adapter loader and facade.

Settings:
- LLM_ADAPTER: "mock" (default), "http", "bedrock" or a dotted module path
- LLM_ALLOW_FALLBACK: fall back to the mock adapter when the configured one fails

Public:
- async def complete(prompt: str, max_tokens: int = ...) -> {"text": str, "model": str}
"""

import importlib
import logging
from typing import Any, Dict, Optional

from rapid_assessment.core.config import settings

logger = logging.getLogger(__name__)

_BUILTIN = {
    "mock": "rapid_assessment.services.llm_adapters.mock_adapter",
    "http": "rapid_assessment.services.llm_adapters.http_adapter",
    "bedrock": "rapid_assessment.services.llm_adapters.bedrock_adapter",
}

_loaded: Dict[str, Any] = {}


def load_adapter(name: str):
    if name in _loaded:
        return _loaded[name]
    mod = importlib.import_module(_BUILTIN.get(name, name))
    # adapter module must implement async complete
    if not hasattr(mod, "complete"):
        raise RuntimeError(f"Adapter {name} does not expose complete()")
    _loaded[name] = mod
    return mod


async def complete(prompt: str, max_tokens: Optional[int] = None) -> Dict[str, Any]:
    """
    Unified entry to call the configured adapter.
    If the adapter fails and fallback is allowed, fall back to the mock adapter.
    """
    max_tokens = max_tokens or settings.REPORT_MAX_TOKENS
    name = settings.LLM_ADAPTER
    adapter = load_adapter(name)
    try:
        return await adapter.complete(prompt, max_tokens=max_tokens)
    except Exception:
        if settings.LLM_ALLOW_FALLBACK and name != "mock":
            logger.exception("LLM adapter %s failed; falling back to mock", name)
            return await load_adapter("mock").complete(prompt, max_tokens=max_tokens)
        raise
