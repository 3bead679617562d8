# app/controller.py
"""
微信訊息處理：簽名校驗 → 解析 XML → 關鍵字 → OpenAI → 圖靈 → 兜底回覆。

簽名、XML 解析與回覆封包都交給 wechatpy；這裡只決定回什麼。
"""
from __future__ import annotations

import logging
from typing import Optional
from xml.parsers.expat import ExpatError

from wechatpy import create_reply, parse_message
from wechatpy.messages import BaseMessage
from wechatpy.utils import check_signature

from .backends import Backends, ChatBackend
from .config import WechatConfig
from .errors import BackendError, MessageParseError
from .keywords import KeywordTable

logger = logging.getLogger(__name__)

DEFAULT_REPLY = "抱歉，我暂时无法回答这个问题，请稍后再试。"
WELCOME_REPLY = "感谢关注！直接发送文字就可以和我聊天，回复「帮助」查看使用说明。"
UNSUPPORTED_REPLY = "暂时只支持文字消息哦。"

# 被動回覆內容上限 2048 字節，留一點餘量
MAX_REPLY_BYTES = 2000


def _truncate(text: str, limit: int = MAX_REPLY_BYTES) -> str:
    raw = text.encode("utf-8")
    if len(raw) <= limit:
        return text
    return raw[: limit - 3].decode("utf-8", errors="ignore") + "..."


class MessageController:
    def __init__(self, wechat: WechatConfig, keywords: KeywordTable, backends: Optional[Backends] = None):
        self.wechat = wechat
        self.keywords = keywords
        self.backends = backends or Backends()

    # =========================
    # 簽名校驗（GET 握手與 POST 訊息共用）
    # =========================
    def verify(self, signature: str, timestamp: str, nonce: str) -> None:
        """失敗時拋出 wechatpy.exceptions.InvalidSignatureException"""
        check_signature(self.wechat.token, signature, timestamp, nonce)

    # =========================
    # POST：訊息
    # =========================
    def parse(self, body: bytes) -> BaseMessage:
        try:
            msg = parse_message(body)
        except (ExpatError, KeyError, ValueError, TypeError, AttributeError) as e:
            raise MessageParseError(f"cannot parse wechat message: {e}") from e
        if msg is None:
            raise MessageParseError("empty message body")
        return msg

    async def handle(self, body: bytes) -> Optional[str]:
        """回傳渲染好的 XML；None 代表不需回覆（路由回 success）"""
        msg = self.parse(body)
        logger.debug("message received: type=%s from=%s id=%s", msg.type, msg.source, msg.id)

        text = await self.resolve_reply(msg)
        if text is None:
            return None
        return create_reply(_truncate(text), message=msg).render()

    async def resolve_reply(self, msg: BaseMessage) -> Optional[str]:
        if msg.type == "text":
            return await self.answer(msg.content or "", msg.source)

        if msg.type == "event":
            if msg.event in ("subscribe", "subscribe_scan"):
                logger.info("new follower: %s", msg.source)
                return WELCOME_REPLY
            logger.debug("event ignored: %s", msg.event)
            return None

        return UNSUPPORTED_REPLY

    async def answer(self, text: str, user_id: str = "") -> str:
        text = text.strip()
        if not text:
            return DEFAULT_REPLY

        matched = self.keywords.lookup(text)
        if matched is not None:
            logger.debug("keyword hit: %s", text)
            return matched

        for backend in (self.backends.openai, self.backends.tuling):
            if backend is None:
                continue
            reply = await self._ask(backend, text, user_id)
            if reply:
                return reply

        return DEFAULT_REPLY

    async def _ask(self, backend: ChatBackend, text: str, user_id: str) -> Optional[str]:
        try:
            return await backend.reply(text, user_id=user_id)
        except BackendError as e:
            logger.warning("chat backend failed, falling back: %s", e)
        except Exception as e:
            logger.exception("chat backend %s raised unexpectedly: %s", getattr(backend, "name", backend), e)
        return None
