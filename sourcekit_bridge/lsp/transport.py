"""
JSON-RPC over stdio with Content-Length framing.

`FrameParser` turns an arbitrary chunking of the server's stdout back into
whole messages; `JsonRpcTransport` owns the pending-request table and the
notification subscribers, and runs the single read loop that feeds both.
"""

from __future__ import annotations

import asyncio
import inspect
import json
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Union

from sourcekit_bridge.exceptions import (
    BridgeError,
    ConnectionClosedError,
    ProtocolFramingError,
    RemoteError,
    RequestTimeoutError,
)
from sourcekit_bridge.logger import setup_logger

logger = setup_logger(__name__)

HEADER_TERMINATOR = b"\r\n\r\n"
MAX_HEADER_BYTES = 8192
READ_CHUNK_SIZE = 65536

METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603

NotificationHandler = Callable[[Any], Union[None, Awaitable[None]]]
RequestHandler = Callable[[Any], Any]
CloseCallback = Callable[[Optional[BaseException]], None]


def encode_message(payload: Dict[str, Any]) -> bytes:
    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    header = f"Content-Length: {len(body)}\r\n\r\n".encode("ascii")
    return header + body


class FrameParser:
    """Incremental decoder for Content-Length framed messages."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes) -> Iterator[Dict[str, Any]]:
        """Buffer ``data`` and yield every message that is now complete."""
        self._buffer.extend(data)
        while True:
            message = self._next_message()
            if message is None:
                return
            yield message

    def feed_eof(self) -> None:
        if self._buffer:
            raise ProtocolFramingError(
                f"Stream ended inside a frame ({len(self._buffer)} bytes unconsumed)"
            )

    def _next_message(self) -> Optional[Dict[str, Any]]:
        header_end = self._buffer.find(HEADER_TERMINATOR)
        if header_end == -1:
            if len(self._buffer) > MAX_HEADER_BYTES:
                raise ProtocolFramingError("Frame header exceeds maximum size without terminator")
            return None

        content_length = self._parse_header(bytes(self._buffer[:header_end]))
        body_start = header_end + len(HEADER_TERMINATOR)
        body_end = body_start + content_length
        if len(self._buffer) < body_end:
            return None

        body = bytes(self._buffer[body_start:body_end])
        del self._buffer[:body_end]

        try:
            message = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ProtocolFramingError(f"Frame body is not valid UTF-8 JSON: {exc}") from exc
        if not isinstance(message, dict):
            raise ProtocolFramingError(
                f"Frame body must be a JSON object, got {type(message).__name__}"
            )
        return message

    @staticmethod
    def _parse_header(raw: bytes) -> int:
        try:
            text = raw.decode("ascii")
        except UnicodeDecodeError as exc:
            raise ProtocolFramingError("Frame header is not ASCII") from exc

        content_length: Optional[int] = None
        for line in text.split("\r\n"):
            name, sep, value = line.partition(":")
            if not sep:
                raise ProtocolFramingError(f"Malformed header line: {line!r}")
            if name.strip().lower() == "content-length":
                try:
                    content_length = int(value.strip())
                except ValueError as exc:
                    raise ProtocolFramingError(
                        f"Invalid Content-Length value: {value.strip()!r}"
                    ) from exc

        if content_length is None:
            raise ProtocolFramingError("Frame header has no Content-Length")
        if content_length < 0:
            raise ProtocolFramingError(f"Negative Content-Length: {content_length}")
        return content_length


class JsonRpcTransport:
    """Request correlation and notification dispatch over a pair of streams."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: Any,
        on_close: Optional[CloseCallback] = None,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._on_close = on_close
        self._parser = FrameParser()
        self._next_id = 0
        self._pending: Dict[int, asyncio.Future] = {}
        self._notification_handlers: Dict[str, List[NotificationHandler]] = {}
        self._request_handlers: Dict[str, RequestHandler] = {}
        self._write_lock = asyncio.Lock()
        self._reader_task: Optional[asyncio.Task] = None
        self._closed = False
        self._close_exc: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def start(self) -> None:
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._read_loop())

    def on_notification(self, method: str, handler: NotificationHandler) -> None:
        self._notification_handlers.setdefault(method, []).append(handler)

    def on_request(self, method: str, handler: RequestHandler) -> None:
        """Answer server-to-client requests for ``method`` with ``handler(params)``."""
        self._request_handlers[method] = handler

    async def send_request(
        self, method: str, params: Any = None, timeout: Optional[float] = None
    ) -> Any:
        self._ensure_open()
        self._next_id += 1
        request_id = self._next_id
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        message: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            message["params"] = params

        try:
            await self._write(message)
            logger.debug("[LSP] -> request id={} method={}", request_id, method)
            if timeout is None:
                return await future
            try:
                return await asyncio.wait_for(future, timeout=timeout)
            except asyncio.TimeoutError as exc:
                logger.warning(
                    "[LSP] Request id={} method={} timed out after {}s", request_id, method, timeout
                )
                raise RequestTimeoutError(method, timeout) from exc
        finally:
            self._pending.pop(request_id, None)

    async def send_notification(self, method: str, params: Any = None) -> None:
        self._ensure_open()
        message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        await self._write(message)
        logger.debug("[LSP] -> notification method={}", method)

    def abort(self, exc: BaseException) -> None:
        """Close the connection and fail every pending request with ``exc``."""
        if self._closed:
            return
        self._closed = True
        self._close_exc = exc

        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(exc)
        if pending:
            logger.debug("[LSP] Failed {} pending request(s): {}", len(pending), exc)

        task = self._reader_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._writer.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ConnectionClosedError(f"Connection to language server is closed: {self._close_exc}")

    async def _write(self, message: Dict[str, Any]) -> None:
        data = encode_message(message)
        async with self._write_lock:
            self._ensure_open()
            try:
                self._writer.write(data)
                await self._writer.drain()
            except (BrokenPipeError, ConnectionResetError) as exc:
                raise ConnectionClosedError(
                    f"Failed to write to language server: {exc}"
                ) from exc

    async def _read_loop(self) -> None:
        error: Optional[BaseException] = None
        try:
            while not self._closed:
                data = await self._reader.read(READ_CHUNK_SIZE)
                if not data:
                    self._parser.feed_eof()
                    break
                for message in self._parser.feed(data):
                    await self._dispatch(message)
        except ProtocolFramingError as exc:
            logger.error("[LSP] Framing error, closing connection: {}", exc)
            error = exc
        except Exception as exc:
            logger.exception("[LSP] Read loop failed, closing connection")
            error = ProtocolFramingError(f"Unreadable message from language server: {exc}")
            error.__cause__ = exc

        if self._closed:
            return
        if self._on_close is not None:
            # The owner decides what pending requests fail with and calls abort().
            self._on_close(error)
        else:
            self.abort(error or ConnectionClosedError("Language server closed its output stream"))

    async def _dispatch(self, message: Dict[str, Any]) -> None:
        method = message.get("method")
        msg_id = message.get("id")
        if msg_id is not None and (isinstance(msg_id, bool) or not isinstance(msg_id, (int, str))):
            raise ProtocolFramingError(f"Invalid message id: {msg_id!r}")
        if method is not None and not isinstance(method, str):
            raise ProtocolFramingError(f"Invalid method name: {method!r}")
        if method is None:
            self._resolve(msg_id, message)
        elif msg_id is None:
            await self._notify_handlers(method, message.get("params"))
        else:
            await self._answer_request(msg_id, method, message.get("params"))

    def _resolve(self, msg_id: Any, message: Dict[str, Any]) -> None:
        error = message.get("error")
        if error is not None and not isinstance(error, dict):
            raise ProtocolFramingError(f"Error reply for id={msg_id} is not an object: {error!r}")

        future = self._pending.pop(msg_id, None)
        if future is None or future.done():
            logger.debug("[LSP] Dropping reply for unknown request id={}", msg_id)
            return

        if error is not None:
            logger.debug("[LSP] <- error id={} {}", msg_id, error)
            future.set_exception(
                RemoteError(
                    code=error.get("code", INTERNAL_ERROR),
                    message=error.get("message", "Unknown error"),
                    data=error.get("data"),
                )
            )
        else:
            logger.debug("[LSP] <- result id={}", msg_id)
            future.set_result(message.get("result"))

    async def _notify_handlers(self, method: str, params: Any) -> None:
        handlers = self._notification_handlers.get(method)
        if not handlers:
            logger.debug("[LSP] <- unhandled notification {}", method)
            return
        for handler in list(handlers):
            try:
                result = handler(params)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("[LSP] Notification handler for {} failed", method)

    async def _answer_request(self, msg_id: Any, method: str, params: Any) -> None:
        handler = self._request_handlers.get(method)
        response: Dict[str, Any] = {"jsonrpc": "2.0", "id": msg_id}
        if handler is None:
            logger.debug("[LSP] <- unsupported server request {}", method)
            response["error"] = {"code": METHOD_NOT_FOUND, "message": f"Unhandled method {method}"}
        else:
            try:
                result = handler(params)
                if inspect.isawaitable(result):
                    result = await result
                response["result"] = result
            except Exception as exc:
                logger.exception("[LSP] Server request handler for {} failed", method)
                response["error"] = {"code": INTERNAL_ERROR, "message": str(exc)}

        try:
            await self._write(response)
        except BridgeError as exc:
            logger.debug("[LSP] Could not answer server request {}: {}", method, exc)
