# app/keywords.py
"""
關鍵字表：啟動時由內建 keyword.json 建立，之後唯讀。

檔案格式為 JSON 物件 {"觸發詞": "回覆內容", ...}，以去除首尾空白後的全文精確比對。
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Union

from .errors import KeywordTableError

logger = logging.getLogger(__name__)

DEFAULT_KEYWORD_FILE = Path(__file__).resolve().parent / "data" / "keyword.json"


class KeywordTable:
    def __init__(self, entries: Mapping[str, str]):
        self._entries = MappingProxyType(dict(entries))

    @classmethod
    def from_bytes(cls, payload: Union[bytes, str]) -> "KeywordTable":
        try:
            data = json.loads(payload)
        except (ValueError, TypeError) as e:
            raise KeywordTableError(f"keyword payload is not valid json: {e}") from e

        if not isinstance(data, dict):
            raise KeywordTableError("keyword payload must be a json object of phrase -> reply")

        entries = {}
        for phrase, reply in data.items():
            if not isinstance(reply, str):
                raise KeywordTableError(f"reply for keyword {phrase!r} must be a string")
            key = phrase.strip()
            if not key:
                raise KeywordTableError("keyword must not be empty")
            if key in entries:
                raise KeywordTableError(f"duplicate keyword {key!r} after trimming whitespace")
            entries[key] = reply
        return cls(entries)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "KeywordTable":
        file = Path(path) if path else DEFAULT_KEYWORD_FILE
        try:
            payload = file.read_bytes()
        except OSError as e:
            raise KeywordTableError(f"cannot read keyword file {file}: {e}") from e
        table = cls.from_bytes(payload)
        logger.info("keyword table loaded: %d entries from %s", len(table), file.name)
        return table

    def lookup(self, text: Optional[str]) -> Optional[str]:
        """命中回傳回覆文字，未命中回傳 None（不是錯誤）"""
        if not text:
            return None
        return self._entries.get(text.strip())

    def __contains__(self, text: object) -> bool:
        return isinstance(text, str) and self.lookup(text) is not None

    def __len__(self) -> int:
        return len(self._entries)
