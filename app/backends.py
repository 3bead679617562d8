# app/backends.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from .config import BackendSettings
from .openai_client import OpenAIChatClient
from .tuling_client import TulingClient

logger = logging.getLogger(__name__)


class ChatBackend(Protocol):
    name: str

    async def reply(self, text: str, user_id: str = "") -> str:
        """Return reply text, raise BackendError on failure."""
        ...

    async def aclose(self) -> None:
        ...


@dataclass(frozen=True)
class Backends:
    openai: Optional[ChatBackend] = None
    tuling: Optional[ChatBackend] = None

    def __iter__(self):
        return iter(b for b in (self.openai, self.tuling) if b is not None)

    async def aclose(self) -> None:
        for backend in self:
            await backend.aclose()


def build_backends(settings: BackendSettings) -> Backends:
    """沒有金鑰就不建立對應後端，不算錯誤"""
    openai = None
    if settings.openai_enabled:
        openai = OpenAIChatClient(
            settings.OPENAI_API_KEY.strip(),
            base_domain=settings.OPENAI_BASE_DOMAIN,
            proxy=settings.OPENAI_PROXY,
            model=settings.OPENAI_MODEL,
            timeout=settings.CHAT_TIMEOUT,
        )
        logger.info(
            "OpenAI backend enabled: domain=%s proxy=%s model=%s",
            settings.OPENAI_BASE_DOMAIN or "default",
            "on" if settings.OPENAI_PROXY else "off",
            openai.model,
        )

    tuling = None
    if settings.tuling_enabled:
        tuling = TulingClient(settings.TULING_API_KEY.strip(), timeout=settings.CHAT_TIMEOUT)
        logger.info("Tuling backend enabled")

    if openai is None and tuling is None:
        logger.warning("no chat backend configured, only keyword replies are available")
    return Backends(openai=openai, tuling=tuling)
