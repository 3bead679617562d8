# app/openai_client.py
import logging
from typing import Optional

import httpx

from .errors import BackendError

logger = logging.getLogger(__name__)

# ---- OpenAI Chat Completions 端點與模型 ----
DEFAULT_DOMAIN = "api.openai.com"
DEFAULT_MODEL = "gpt-4o-mini"
SYSTEM_PROMPT = (
    "你是微信公众号里的中文聊天助手，回复需：\n"
    "1) 简洁，适合在手机上阅读，尽量不超过 300 字\n"
    "2) 不使用 Markdown 表格\n"
    "3) 无法确定时坦白说明"
)


def _base_url(base_domain: str) -> str:
    domain = (base_domain or DEFAULT_DOMAIN).rstrip("/")
    if "://" not in domain:
        domain = f"https://{domain}"
    return f"{domain}/v1"


def _proxy_url(proxy: str) -> Optional[str]:
    if not proxy:
        return None
    return proxy if "://" in proxy else f"http://{proxy}"


class OpenAIChatClient:
    name = "openai"

    def __init__(
        self,
        api_key: str,
        base_domain: str = "",
        proxy: str = "",
        model: str = DEFAULT_MODEL,
        timeout: float = 4.5,
        http: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.url = f"{_base_url(base_domain)}/chat/completions"
        self.timeout = timeout
        self._http = http or httpx.AsyncClient(proxy=_proxy_url(proxy), timeout=timeout)

    async def reply(self, text: str, user_id: str = "") -> str:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        payload = {
            "model": self.model,
            "temperature": 0.7,
            "max_tokens": 800,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
        }
        if user_id:
            payload["user"] = user_id

        try:
            resp = await self._http.post(self.url, headers=headers, json=payload, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise BackendError(self.name, f"request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise BackendError(self.name, f"request failed: {e}") from e

        if resp.status_code >= 400:
            logger.error("OpenAI API error %s: %s", resp.status_code, resp.text[:500])
            raise BackendError(self.name, f"OpenAI API error {resp.status_code}")

        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise BackendError(self.name, f"unexpected response body: {e}") from e

        content = content.strip()
        if not content:
            raise BackendError(self.name, "empty completion")
        return content

    async def aclose(self) -> None:
        await self._http.aclose()
