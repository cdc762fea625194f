"""HTTP client for an Ollama model server."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from skillpath.errors import UpstreamUnavailable

logger = structlog.get_logger()


class OllamaClient:
    """Thin async wrapper over the Ollama REST API.

    The model is always passed per call; the client holds no notion of a
    current model.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            r = await self._client.request(method, path, **kwargs)
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("ollama_http_error", path=path, status=exc.response.status_code)
            msg = f"Model server returned {exc.response.status_code}"
            raise UpstreamUnavailable(msg) from exc
        except httpx.RequestError as exc:
            logger.warning("ollama_unreachable", path=path, error=str(exc))
            msg = "Model server unreachable"
            raise UpstreamUnavailable(msg) from exc
        except ValueError as exc:
            msg = "Model server sent an invalid response"
            raise UpstreamUnavailable(msg) from exc
        if not isinstance(data, dict):
            msg = "Model server sent an invalid response"
            raise UpstreamUnavailable(msg)
        return data

    async def health(self) -> dict[str, Any]:
        """Report reachability. Never raises."""
        try:
            data = await self._request("GET", "/api/tags")
        except UpstreamUnavailable:
            return {"status": "unavailable", "models": []}
        return {"status": "healthy", "models": [m.get("name", "") for m in data.get("models") or []]}

    async def list_models(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/api/tags")
        return list(data.get("models") or [])

    async def chat(self, messages: list[dict[str, str]], model: str) -> str:
        """Send a conversation as one ``role: content`` prompt and return the reply."""
        prompt = "\n".join(f"{m['role']}: {m['content']}" for m in messages)
        data = await self._request(
            "POST",
            "/api/generate",
            json={"model": model, "prompt": prompt, "stream": False},
        )
        reply = data.get("response")
        if not isinstance(reply, str):
            msg = "Model server reply had no text"
            raise UpstreamUnavailable(msg)
        return reply
