import hashlib
import time

TOKEN = "robot-token"
USER = "oUser_openid_123"
ROBOT = "gh_robot_account"


def sign(timestamp: str, nonce: str, token: str = TOKEN) -> str:
    return hashlib.sha1("".join(sorted([token, timestamp, nonce])).encode("utf-8")).hexdigest()


def signed_params(**extra) -> dict:
    timestamp = str(int(time.time()))
    nonce = "183729"
    params = {"signature": sign(timestamp, nonce), "timestamp": timestamp, "nonce": nonce}
    params.update(extra)
    return params


def text_xml(content: str, from_user: str = USER, to_user: str = ROBOT) -> str:
    return (
        "<xml>"
        f"<ToUserName><![CDATA[{to_user}]]></ToUserName>"
        f"<FromUserName><![CDATA[{from_user}]]></FromUserName>"
        "<CreateTime>1700000000</CreateTime>"
        "<MsgType><![CDATA[text]]></MsgType>"
        f"<Content><![CDATA[{content}]]></Content>"
        "<MsgId>23456789012345678</MsgId>"
        "</xml>"
    )


def event_xml(event: str, from_user: str = USER, to_user: str = ROBOT) -> str:
    return (
        "<xml>"
        f"<ToUserName><![CDATA[{to_user}]]></ToUserName>"
        f"<FromUserName><![CDATA[{from_user}]]></FromUserName>"
        "<CreateTime>1700000000</CreateTime>"
        "<MsgType><![CDATA[event]]></MsgType>"
        f"<Event><![CDATA[{event}]]></Event>"
        "</xml>"
    )


class FakeBackend:
    def __init__(self, name: str, reply: str = "", error: Exception = None):
        self.name = name
        self._reply = reply
        self._error = error
        self.calls = []
        self.closed = False

    async def reply(self, text: str, user_id: str = "") -> str:
        self.calls.append((text, user_id))
        if self._error is not None:
            raise self._error
        return self._reply

    async def aclose(self) -> None:
        self.closed = True
