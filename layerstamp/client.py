from __future__ import annotations

from typing import Any, Mapping

import requests
from requests.adapters import HTTPAdapter


class ClientError(RuntimeError):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:100]
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return response.text[:100]


class LayerstampClient:
    """Thin HTTP client for a running layerstamp server."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
        pool_size: int = 10,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        if session is None:
            # one pooled connection per concurrent caller
            session = requests.Session()
            adapter = HTTPAdapter(pool_maxsize=max(1, pool_size))
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def _post_for_bytes(self, path: str, payload: Mapping[str, Any]) -> bytes:
        response = self.session.post(f"{self.base_url}{path}", json=dict(payload), timeout=self.timeout)
        if not response.ok:
            raise ClientError(response.status_code, _error_message(response))
        return response.content

    def generate_image(self, payload: Mapping[str, Any]) -> bytes:
        return self._post_for_bytes("/api/generate-image", payload)

    def generate_from_template(
        self,
        template_file: str,
        template_data: Mapping[str, str] | None = None,
        *,
        output_width: int | None = None,
        output_height: int | None = None,
        output_format: str | None = None,
    ) -> bytes:
        payload: dict[str, Any] = {"templateFile": template_file, "templateData": dict(template_data or {})}
        if output_width:
            payload["outputWidth"] = output_width
        if output_height:
            payload["outputHeight"] = output_height
        if output_format:
            payload["outputFormat"] = output_format
        return self._post_for_bytes("/api/generate-from-template", payload)

    def templates(self) -> dict[str, Any]:
        response = self.session.get(f"{self.base_url}/api/templates", timeout=self.timeout)
        if not response.ok:
            raise ClientError(response.status_code, _error_message(response))
        return response.json()

    def close(self) -> None:
        self.session.close()
