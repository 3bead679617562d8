# server.py
import argparse
import logging
import sys
from typing import Optional, Sequence

import uvicorn

from app.backends import build_backends
from app.config import ConfigSettings, load_backend_settings, load_config, setup_logging
from app.errors import ServerError, StartupError
from app.keywords import KeywordTable
from app.main import create_app

logger = logging.getLogger("server")

# 收到中斷訊號後，等待進行中的請求最多 5 秒
SHUTDOWN_TIMEOUT = 5


def build_server(app, config: ConfigSettings) -> uvicorn.Server:
    level = logging.getLevelName(logging.getLogger().getEffectiveLevel()).lower()
    if level not in uvicorn.config.LOG_LEVELS:
        level = "info"
    return uvicorn.Server(
        uvicorn.Config(
            app,
            host="0.0.0.0",
            port=config.app.port,
            timeout_graceful_shutdown=SHUTDOWN_TIMEOUT,
            log_config=None,  # 沿用 setup_logging 的格式
            log_level=level,
            access_log=config.app.mode == "debug",
        )
    )


def run_app(config_file: str) -> None:
    config = load_config(config_file)
    backend_settings = load_backend_settings()
    setup_logging(config.app.mode, backend_settings.LOG_LEVEL or None)

    keywords = KeywordTable.load()
    backends = build_backends(backend_settings)
    app = create_app(config, keywords, backends)

    server = build_server(app, config)
    logger.info("Listening and serving HTTP on http://127.0.0.1:%d", config.app.port)
    # uvicorn 負責 SIGINT/SIGTERM 與限時優雅關閉，關閉完成後會把 SIGINT 重新拋出
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Shutdown Server")

    if not server.started:
        raise ServerError("Server startup failed")
    logger.info("Server gracefully stopped")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="WeChat public account robot")
    parser.add_argument("--config", required=True, help="配置文件 (.yml / .yaml)")
    args = parser.parse_args(argv)

    setup_logging("release")
    try:
        run_app(args.config)
    except StartupError as e:
        logger.critical("process config error: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
