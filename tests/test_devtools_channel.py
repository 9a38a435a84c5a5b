# tests/test_devtools_channel.py
import json
import queue
import threading

import pytest
import websocket
from websocket import ABNF

from mcp_embedded_browser.browser.channel import DevToolsChannel
from mcp_embedded_browser.errors import DevToolsError


def text_frame(payload, fin=1):
    data = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    return ABNF(fin=fin, opcode=ABNF.OPCODE_TEXT, data=data)


def cont_frame(data: bytes, fin=1):
    return ABNF(fin=fin, opcode=ABNF.OPCODE_CONT, data=data)


class FakeWebSocket:
    """Queue-backed stand-in for websocket.WebSocket; responder answers sent commands."""

    def __init__(self, frames=(), responder=None):
        self.frames = queue.Queue()
        for frame in frames:
            self.frames.put(frame)
        self.responder = responder
        self.sent = []
        self.pongs = []
        self.closed = False
        self.timeout = 0.01

    def settimeout(self, timeout):
        self.timeout = timeout

    def recv_frame(self):
        try:
            return self.frames.get(timeout=min(self.timeout or 0.01, 0.01))
        except queue.Empty:
            raise websocket.WebSocketTimeoutException("timed out")

    def send(self, text):
        message = json.loads(text)
        self.sent.append(message)
        if self.responder:
            reply = self.responder(message)
            if reply is not None:
                self.frames.put(text_frame(reply))

    def pong(self, data):
        self.pongs.append(data)

    def close(self):
        self.closed = True


def make_channel(ws):
    channel = DevToolsChannel("ws://127.0.0.1:9/devtools/page/x")
    channel._ws = ws
    return channel


def test_fragmented_message_is_reassembled():
    ws = FakeWebSocket([
        text_frame(b'{"id": 1, "res', fin=0),
        cont_frame(b'ult": {"ok": ', fin=0),
        cont_frame(b'true}}'),
    ])
    assert make_channel(ws).read_message(1.0) == {"id": 1, "result": {"ok": True}}


def test_receive_by_id_discards_other_messages():
    ws = FakeWebSocket([
        text_frame({"method": "Network.requestWillBeSent", "params": {}}),
        text_frame({"id": 7, "result": {}}),
        text_frame({"id": 1, "result": {"cookies": []}}),
    ])
    assert make_channel(ws).receive_by_id(1, 1.0) == {"id": 1, "result": {"cookies": []}}


def test_receive_by_id_times_out():
    ws = FakeWebSocket([text_frame({"method": "Page.loadEventFired"})])
    assert make_channel(ws).receive_by_id(1, 0.05) is None


def test_ping_is_answered_and_reading_continues():
    ws = FakeWebSocket([ABNF(fin=1, opcode=ABNF.OPCODE_PING, data=b"hb"), text_frame({"id": 2})])
    assert make_channel(ws).read_message(1.0) == {"id": 2}
    assert ws.pongs == [b"hb"]


def test_close_frame_ends_reading():
    ws = FakeWebSocket([ABNF(fin=1, opcode=ABNF.OPCODE_CLOSE, data=b"")])
    channel = make_channel(ws)
    assert channel.receive_by_id(1, 1.0) is None
    assert channel.closed


def test_undecodable_frame_is_skipped():
    ws = FakeWebSocket([text_frame(b"\xff\xfe not json"), text_frame({"id": 3})])
    assert make_channel(ws).read_message(1.0) == {"id": 3}


def test_send_shapes_the_command():
    ws = FakeWebSocket()
    channel = make_channel(ws)
    assert channel.send("Network.getAllCookies", msg_id=1) == 1
    channel.send("Target.attachToTarget", {"targetId": "T"}, session_id="S")
    assert ws.sent == [
        {"id": 1, "method": "Network.getAllCookies"},
        {"id": 1, "method": "Target.attachToTarget", "params": {"targetId": "T"}, "sessionId": "S"},
    ]


def test_send_on_closed_channel():
    channel = DevToolsChannel("ws://127.0.0.1:9/x")
    with pytest.raises(DevToolsError):
        channel.send("Browser.getVersion")


def test_call_returns_result_or_raises():
    def responder(message):
        if message["method"] == "Browser.getVersion":
            return {"id": message["id"], "result": {"product": "Chrome/126"}}
        return {"id": message["id"], "error": {"message": "method not found"}}

    channel = make_channel(FakeWebSocket(responder=responder))
    assert channel.call("Browser.getVersion") == {"product": "Chrome/126"}
    with pytest.raises(DevToolsError, match="method not found"):
        channel.call("Bogus.method")


def test_event_pump_routes_events_and_responses():
    events = []
    seen = threading.Event()

    def on_event(message):
        events.append(message["method"])
        seen.set()

    ws = FakeWebSocket(
        [text_frame({"method": "Browser.downloadWillBegin", "params": {"guid": "g"}})],
        responder=lambda m: {"id": m["id"], "result": {"targetInfos": []}},
    )
    channel = make_channel(ws)
    channel.start_event_pump(on_event)
    try:
        assert channel.call("Target.getTargets", timeout=2.0) == {"targetInfos": []}
        assert seen.wait(2.0)
        assert events == ["Browser.downloadWillBegin"]
    finally:
        channel.close()
    assert ws.closed
