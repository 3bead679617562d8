# app/main.py
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import FileResponse, PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles
from wechatpy.exceptions import InvalidSignatureException

from .backends import Backends
from .config import ConfigSettings
from .controller import MessageController
from .errors import MessageParseError
from .keywords import KeywordTable

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
TEMPLATE_DIR = BASE_DIR / "templates"
PUBLIC_DIR = BASE_DIR / "public"

router = APIRouter(prefix="/weChat", tags=["wechat"])


def get_controller(request: Request) -> MessageController:
    return request.app.state.controller


# =========================
# 簽名回調（GET 握手）
# =========================
@router.get("/receiveMessage")
async def verify_server(
    signature: str = "",
    timestamp: str = "",
    nonce: str = "",
    echostr: str = "",
    controller: MessageController = Depends(get_controller),
):
    try:
        controller.verify(signature, timestamp, nonce)
    except InvalidSignatureException:
        logger.warning("handshake rejected: bad signature timestamp=%s nonce=%s", timestamp, nonce)
        return PlainTextResponse("invalid signature", status_code=403)
    logger.info("handshake ok")
    return PlainTextResponse(echostr)


# =========================
# 接收發送給公眾號的訊息（POST）
# =========================
@router.post("/receiveMessage")
async def receive_message(
    request: Request,
    signature: str = "",
    timestamp: str = "",
    nonce: str = "",
    controller: MessageController = Depends(get_controller),
):
    try:
        controller.verify(signature, timestamp, nonce)
    except InvalidSignatureException:
        logger.warning("message rejected: bad signature timestamp=%s nonce=%s", timestamp, nonce)
        return PlainTextResponse("invalid signature", status_code=403)

    body = await request.body()
    try:
        xml = await controller.handle(body)
    except MessageParseError as e:
        logger.warning("bad message body: %s", e)
        return PlainTextResponse("invalid message", status_code=400)

    if xml is None:
        # 微信約定：回 success 表示不回覆
        return PlainTextResponse("success")
    return Response(content=xml, media_type="application/xml")


def create_app(config: ConfigSettings, keywords: KeywordTable, backends: Backends) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("service started, mode=%s", config.app.mode)
        yield
        await backends.aclose()
        logger.info("chat backends closed")

    app = FastAPI(
        title="weChatRobot",
        debug=config.app.mode == "debug",
        lifespan=lifespan,
        docs_url="/docs" if config.app.mode == "debug" else None,
        redoc_url=None,
    )
    app.state.config = config
    app.state.controller = MessageController(config.wechat, keywords, backends)

    # 靜態檔案
    app.mount("/public", StaticFiles(directory=str(PUBLIC_DIR)), name="public")

    @app.get("/", include_in_schema=False)
    async def index():
        return FileResponse(TEMPLATE_DIR / "index.html", media_type="text/html")

    app.include_router(router)
    return app
