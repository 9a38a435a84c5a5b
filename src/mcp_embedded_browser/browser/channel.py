"""
Remote-debugging message channel over a loopback websocket.

Two usage modes share one frame reader:

* request/response without a reader thread (``send`` + ``receive_by_id``),
  used for one-shot exchanges such as listing all cookies;
* a background event pump (``start_event_pump``) that routes responses to
  pending ``call`` futures and everything else to an event callback.
"""

import json
import time
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from typing import Callable, Dict, Optional

import websocket

from ..errors import DevToolsError

import logging
logger = logging.getLogger(__name__)


class DevToolsChannel:
    """One websocket connection to a DevTools target."""

    def __init__(self, ws_url: str, connect_timeout: float = 5.0):
        self.ws_url = ws_url
        self.connect_timeout = connect_timeout
        self._ws: Optional[websocket.WebSocket] = None
        self._seq = 0
        self._seq_lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._partial: Optional[bytearray] = None
        self._closed = False

        self._pending: Dict[int, Future] = {}
        self._pending_lock = threading.Lock()
        self._reader: Optional[threading.Thread] = None
        self._stop = threading.Event()

    # ------------------------------------------------------------------ #
    # Connection
    # ------------------------------------------------------------------ #

    def connect(self) -> "DevToolsChannel":
        try:
            # Chrome rejects unknown Origin headers unless --remote-allow-origins is set.
            self._ws = websocket.create_connection(
                self.ws_url,
                timeout=self.connect_timeout,
                suppress_origin=True,
            )
        except (websocket.WebSocketException, OSError) as e:
            raise DevToolsError(f"Could not connect to {self.ws_url}: {e}") from e
        self._closed = False
        logger.debug("DevTools channel connected to %s", self.ws_url)
        return self

    @property
    def closed(self) -> bool:
        return self._closed or self._ws is None

    def close(self) -> None:
        self._stop.set()
        ws, self._ws = self._ws, None
        self._closed = True
        if ws is not None:
            try:
                ws.close()
            except (websocket.WebSocketException, OSError):
                pass
        reader = self._reader
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=2.0)
        self._reader = None
        self._fail_pending("DevTools channel closed")

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------------------------------------------------------ #
    # Writing
    # ------------------------------------------------------------------ #

    def next_id(self) -> int:
        with self._seq_lock:
            self._seq += 1
            return self._seq

    def send(
        self,
        method: str,
        params: Optional[dict] = None,
        session_id: Optional[str] = None,
        msg_id: Optional[int] = None,
    ) -> int:
        """Send one command without waiting. Returns the request id."""
        if self.closed:
            raise DevToolsError("DevTools channel is closed")
        msg_id = msg_id if msg_id is not None else self.next_id()
        message = {"id": msg_id, "method": method}
        if params:
            message["params"] = params
        if session_id:
            message["sessionId"] = session_id
        try:
            with self._send_lock:
                self._ws.send(json.dumps(message))
        except (websocket.WebSocketException, OSError) as e:
            self._closed = True
            raise DevToolsError(f"Sending {method} failed: {e}") from e
        return msg_id

    # ------------------------------------------------------------------ #
    # Reading
    # ------------------------------------------------------------------ #

    def read_message(self, timeout: float) -> Optional[dict]:
        """
        Read the next complete JSON message, reassembling fragmented frames.

        Returns None on timeout or when the peer closes the connection.
        """
        deadline = time.monotonic() + max(timeout, 0.0)
        while not self.closed:
            ws = self._ws
            remaining = deadline - time.monotonic()
            if ws is None or remaining <= 0:
                return None
            try:
                ws.settimeout(remaining)
                frame = ws.recv_frame()
            except websocket.WebSocketTimeoutException:
                return None
            except (websocket.WebSocketConnectionClosedException, OSError) as e:
                logger.debug("DevTools channel lost: %s", e)
                self._closed = True
                return None

            opcode = frame.opcode
            if opcode == websocket.ABNF.OPCODE_CLOSE:
                self._closed = True
                return None
            if opcode == websocket.ABNF.OPCODE_PING:
                ws.pong(frame.data)
                continue
            if opcode == websocket.ABNF.OPCODE_PONG:
                continue
            if opcode in (websocket.ABNF.OPCODE_TEXT, websocket.ABNF.OPCODE_BINARY):
                self._partial = bytearray(frame.data or b"")
            elif opcode == websocket.ABNF.OPCODE_CONT and self._partial is not None:
                self._partial.extend(frame.data or b"")
            else:
                continue

            if not frame.fin:
                continue

            payload, self._partial = bytes(self._partial), None
            try:
                return json.loads(payload.decode("utf-8"))
            except (UnicodeDecodeError, ValueError):
                logger.debug("Skipping undecodable DevTools frame (%d bytes)", len(payload))
                continue
        return None

    def receive_by_id(self, msg_id: int, timeout: float) -> Optional[dict]:
        """
        Read messages until the response tagged msg_id arrives.

        Unrelated responses and async events are discarded. Returns None on
        timeout or close.
        """
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            message = self.read_message(remaining)
            if message is None:
                if self.closed:
                    return None
                continue
            if message.get("id") == msg_id:
                return message
            logger.debug("Discarding DevTools message %s while waiting for id %s",
                         message.get("id", message.get("method")), msg_id)

    # ------------------------------------------------------------------ #
    # Request/response
    # ------------------------------------------------------------------ #

    def call(
        self,
        method: str,
        params: Optional[dict] = None,
        session_id: Optional[str] = None,
        timeout: float = 10.0,
    ) -> dict:
        """
        Send a command and block for its result.

        Must not be called from the event pump thread itself.

        Raises:
            DevToolsError: on transport failure, timeout or an error response
        """
        if self._reader is not None and self._reader.is_alive():
            if threading.current_thread() is self._reader:
                raise DevToolsError("call() from the event pump would deadlock; use send()")
            msg_id = self.next_id()
            fut: Future = Future()
            with self._pending_lock:
                self._pending[msg_id] = fut
            try:
                self.send(method, params, session_id, msg_id=msg_id)
                response = fut.result(timeout=timeout)
            except FutureTimeoutError:
                response = None
            finally:
                with self._pending_lock:
                    self._pending.pop(msg_id, None)
        else:
            msg_id = self.send(method, params, session_id)
            response = self.receive_by_id(msg_id, timeout)

        if response is None:
            raise DevToolsError(f"{method} got no response within {timeout}s")
        if "error" in response:
            err = response["error"] or {}
            raise DevToolsError(f"{method} failed: {err.get('message', err)}")
        return response.get("result") or {}

    # ------------------------------------------------------------------ #
    # Event pump
    # ------------------------------------------------------------------ #

    def start_event_pump(self, on_event: Callable[[dict], None], name: str = "devtools-events") -> None:
        """Read messages on a daemon thread; events go to on_event."""
        if self._reader is not None:
            return
        self._stop.clear()
        self._reader = threading.Thread(target=self._pump, args=(on_event,), name=name, daemon=True)
        self._reader.start()

    def _pump(self, on_event: Callable[[dict], None]) -> None:
        while not self._stop.is_set() and not self.closed:
            message = self.read_message(1.0)
            if message is None:
                continue
            msg_id = message.get("id")
            if msg_id is not None:
                with self._pending_lock:
                    fut = self._pending.get(msg_id)
                if fut is not None and not fut.done():
                    fut.set_result(message)
                continue
            try:
                on_event(message)
            except Exception:
                logger.exception("DevTools event handler failed for %s", message.get("method"))
        self._fail_pending("DevTools channel closed")
        logger.debug("DevTools event pump stopped")

    def _fail_pending(self, reason: str) -> None:
        with self._pending_lock:
            pending, self._pending = self._pending, {}
        for fut in pending.values():
            if not fut.done():
                fut.set_exception(DevToolsError(reason))


__all__ = ["DevToolsChannel"]
