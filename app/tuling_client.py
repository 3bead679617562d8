# app/tuling_client.py
import hashlib
import logging
from typing import Optional

import httpx

from .errors import BackendError

logger = logging.getLogger(__name__)

TULING_API_URL = "http://openapi.turingapi.com/openapi/api/v2"
# 圖靈要求 userId 為 32 位以內的字母數字
ANONYMOUS_USER = "wechatrobot"


def _tuling_user_id(user_id: str) -> str:
    if not user_id:
        return ANONYMOUS_USER
    return hashlib.md5(user_id.encode("utf-8")).hexdigest()


class TulingClient:
    name = "tuling"

    def __init__(self, api_key: str, timeout: float = 4.5, http: Optional[httpx.AsyncClient] = None):
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.timeout = timeout
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def reply(self, text: str, user_id: str = "") -> str:
        body = {
            "reqType": 0,
            "perception": {"inputText": {"text": text}},
            "userInfo": {"apiKey": self.api_key, "userId": _tuling_user_id(user_id)},
        }
        try:
            resp = await self._http.post(TULING_API_URL, json=body, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise BackendError(self.name, f"request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise BackendError(self.name, f"request failed: {e}") from e

        if resp.status_code >= 400:
            logger.error("Tuling API error %s: %s", resp.status_code, resp.text[:500])
            raise BackendError(self.name, f"Tuling API error {resp.status_code}")

        try:
            data = resp.json()
            code = int((data.get("intent") or {}).get("code", 0))
            results = data.get("results") or []
        except (ValueError, TypeError, AttributeError) as e:
            raise BackendError(self.name, f"unexpected response body: {e}") from e

        # 10000 以下都是錯誤碼（key 無效、次數用完等）
        if code < 10000:
            raise BackendError(self.name, f"error code {code}")

        texts = [
            (r.get("values") or {}).get("text", "")
            for r in results
            if isinstance(r, dict) and r.get("resultType") == "text"
        ]
        reply = "\n".join(t for t in texts if t).strip()
        if not reply:
            raise BackendError(self.name, "no text result")
        return reply

    async def aclose(self) -> None:
        await self._http.aclose()
