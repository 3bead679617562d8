import pytest
from fastapi.testclient import TestClient

from app.backends import Backends
from app.config import ConfigSettings
from app.keywords import KeywordTable
from app.main import create_app

from .helpers import TOKEN


@pytest.fixture
def config() -> ConfigSettings:
    return ConfigSettings.model_validate(
        {
            "app": {"port": 8080, "mode": "test"},
            "wechat": {"token": TOKEN, "appId": "wx1234567890", "appSecret": "s3cret"},
        }
    )


@pytest.fixture
def keywords() -> KeywordTable:
    return KeywordTable({"你好": "你好呀，我是机器人", "help": "send me text"})


@pytest.fixture
def make_client(config, keywords):
    def _make(openai=None, tuling=None, table=None) -> TestClient:
        app = create_app(config, table or keywords, Backends(openai=openai, tuling=tuling))
        return TestClient(app)

    return _make


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(
        "app:\n"
        "  port: 9090\n"
        "  mode: debug\n"
        "wechat:\n"
        f"  token: {TOKEN}\n"
        "  appId: wx1234567890\n"
        "  appSecret: s3cret\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def _clean_backend_env(monkeypatch):
    for name in ("OPENAI_API_KEY", "OPENAI_BASE_DOMAIN", "OPENAI_PROXY", "OPENAI_MODEL", "TULING_API_KEY", "CHAT_TIMEOUT", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
