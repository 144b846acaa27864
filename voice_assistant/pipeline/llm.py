"""
OpenAI-compatible chat completions client (vLLM locally, DashScope online).
"""

from typing import Any, Dict, List, Optional

import requests

from ..util.logging import logger


def _content_text(content: Any) -> str:
    # Some servers return content as a list of typed parts
    if isinstance(content, list):
        return "".join(part.get("text", "") for part in content if isinstance(part, dict))
    return content if isinstance(content, str) else ""


class ChatCompletionClient:
    """Posts ``{model, messages}`` to ``{base}/v1/chat/completions``.

    ``max_tokens`` is sent only when set; pass None to leave it to the server.
    """

    def __init__(self, base_url: str, model: str, api_key: Optional[str] = None,
                 timeout: int = 120, max_tokens: Optional[int] = 512):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.max_tokens = max_tokens

    @property
    def requires_key(self) -> bool:
        return self.api_key is not None

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    def complete(self, messages: List[Dict[str, Any]], model: Optional[str] = None,
                 timeout: Optional[int] = None, **extra: Any) -> Optional[str]:
        """Return the first choice's message content, or None on any failure."""
        if self.requires_key and not self.api_key.strip():
            logger.warning("Chat completion skipped: API key is not configured")
            return None

        body = {"model": model or self.model, "messages": messages}
        if self.max_tokens is not None:
            body["max_tokens"] = self.max_tokens
        body.update(extra)
        try:
            response = requests.post(
                f"{self.base_url}/v1/chat/completions",
                json=body,
                headers=self._headers(),
                timeout=timeout or self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Chat completion request to {self.base_url} failed: {e}")
            return None

        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            logger.warning(f"Chat completion from {self.base_url} had no choices")
            return None

        text = _content_text(content).strip()
        return text or None
