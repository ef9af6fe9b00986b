"""Minimal asyncio Language Server Protocol client used as a hover source."""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
import os
from typing import Any, Mapping, Sequence

from ..editor.document_model import DocumentSnapshot
from .hover import HoverFragment, hover_fragments

__all__ = [
    "LanguageServerClient",
    "LanguageServerError",
    "LanguageServerHoverService",
    "encode_message",
    "read_message",
]

LOGGER = logging.getLogger(__name__)
_HEADER_ENCODING = "ascii"
_CONTENT_LENGTH = "content-length"


class LanguageServerError(RuntimeError):
    """Raised when the language server fails or answers with an error."""


def encode_message(payload: Mapping[str, Any]) -> bytes:
    """Frame a JSON-RPC payload with the LSP ``Content-Length`` header."""

    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    header = f"Content-Length: {len(body)}\r\n\r\n".encode(_HEADER_ENCODING)
    return header + body


async def read_message(reader: asyncio.StreamReader) -> dict[str, Any] | None:
    """Read one framed message; return ``None`` at end of stream."""

    length: int | None = None
    while True:
        raw = await reader.readline()
        if not raw:
            return None
        line = raw.decode(_HEADER_ENCODING, errors="replace").strip()
        if not line:
            break
        name, _, value = line.partition(":")
        if name.strip().lower() == _CONTENT_LENGTH:
            try:
                length = int(value.strip())
            except ValueError as exc:
                raise LanguageServerError(f"Invalid Content-Length header: {line!r}") from exc
    if length is None:
        raise LanguageServerError("Message is missing a Content-Length header")
    body = await reader.readexactly(length)
    payload = json.loads(body.decode("utf-8"))
    if not isinstance(payload, dict):
        raise LanguageServerError("Message body is not a JSON object")
    return payload


class LanguageServerClient:
    """Spawns a language server over stdio and speaks JSON-RPC to it."""

    def __init__(
        self,
        command: Sequence[str],
        *,
        root_uri: str | None = None,
        request_timeout: float = 10.0,
        initialization_options: Mapping[str, Any] | None = None,
    ) -> None:
        if not command:
            raise ValueError("command is required")
        self._command = list(command)
        self._root_uri = root_uri
        self._request_timeout = max(0.1, float(request_timeout))
        self._initialization_options = dict(initialization_options or {})
        self._process: asyncio.subprocess.Process | None = None
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._ids = itertools.count(1)
        self._versions: dict[str, int] = {}
        self._capabilities: dict[str, Any] = {}
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def capabilities(self) -> dict[str, Any]:
        return dict(self._capabilities)

    @property
    def running(self) -> bool:
        return self._reader_task is not None and not self._reader_task.done() and not self._closed

    async def start(self) -> dict[str, Any]:
        """Launch the server process and perform the ``initialize`` handshake."""

        LOGGER.info("Starting language server: %s", " ".join(self._command))
        try:
            process = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise LanguageServerError(f"Unable to launch {self._command[0]!r}: {exc}") from exc
        self._process = process
        assert process.stdout is not None and process.stdin is not None
        return await self.connect(process.stdout, process.stdin)

    async def connect(self, reader: asyncio.StreamReader, writer: Any) -> dict[str, Any]:
        """Attach to existing streams and run the ``initialize`` handshake."""

        self._reader = reader
        self._writer = writer
        self._reader_task = asyncio.get_running_loop().create_task(self._read_loop())
        result = await self.request(
            "initialize",
            {
                "processId": os.getpid(),
                "rootUri": self._root_uri,
                "capabilities": {
                    "textDocument": {
                        "hover": {"contentFormat": ["markdown", "plaintext"]},
                        "synchronization": {"didSave": False},
                    },
                    "window": {"workDoneProgress": False},
                },
                "initializationOptions": self._initialization_options or None,
            },
        )
        if isinstance(result, Mapping):
            self._capabilities = dict(result.get("capabilities") or {})
        await self.notify("initialized", {})
        return self.capabilities

    async def aclose(self) -> None:
        if self._closed:
            return
        try:
            if self.running:
                with contextlib.suppress(LanguageServerError, asyncio.TimeoutError):
                    await self.request("shutdown", None)
                with contextlib.suppress(LanguageServerError, ConnectionError):
                    await self.notify("exit", None)
        finally:
            self._closed = True
            self._fail_pending(LanguageServerError("Language server client closed"))
            if self._reader_task is not None:
                self._reader_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._reader_task
            await self._terminate_process()

    async def _terminate_process(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=2.0)
        except asyncio.TimeoutError:
            LOGGER.warning("Language server did not exit; terminating")
            with contextlib.suppress(ProcessLookupError):
                process.terminate()
            await process.wait()

    # ------------------------------------------------------------------
    # Document synchronisation
    # ------------------------------------------------------------------
    async def open_document(self, document: DocumentSnapshot) -> None:
        self._versions[document.document_id] = document.version_id
        await self.notify(
            "textDocument/didOpen",
            {
                "textDocument": {
                    "uri": document.document_id,
                    "languageId": document.language,
                    "version": document.version_id,
                    "text": document.text,
                }
            },
        )

    async def change_document(self, document: DocumentSnapshot) -> None:
        if document.document_id not in self._versions:
            await self.open_document(document)
            return
        self._versions[document.document_id] = document.version_id
        await self.notify(
            "textDocument/didChange",
            {
                "textDocument": {"uri": document.document_id, "version": document.version_id},
                "contentChanges": [{"text": document.text}],
            },
        )

    async def close_document(self, document_id: str) -> None:
        if self._versions.pop(document_id, None) is None:
            return
        await self.notify("textDocument/didClose", {"textDocument": {"uri": document_id}})

    async def hover(self, document_id: str, line: int, character: int) -> list[HoverFragment]:
        result = await self.request(
            "textDocument/hover",
            {
                "textDocument": {"uri": document_id},
                "position": {"line": line, "character": character},
            },
        )
        if not isinstance(result, Mapping):
            return []
        return hover_fragments(result.get("contents"))

    # ------------------------------------------------------------------
    # JSON-RPC plumbing
    # ------------------------------------------------------------------
    async def request(self, method: str, params: Any) -> Any:
        if self._closed or self._writer is None:
            raise LanguageServerError("Language server is not running")
        request_id = next(self._ids)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._send({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})
            return await asyncio.wait_for(future, timeout=self._request_timeout)
        finally:
            self._pending.pop(request_id, None)

    async def notify(self, method: str, params: Any) -> None:
        if self._closed or self._writer is None:
            raise LanguageServerError("Language server is not running")
        await self._send({"jsonrpc": "2.0", "method": method, "params": params})

    async def _send(self, payload: Mapping[str, Any]) -> None:
        writer = self._writer
        if writer is None:
            raise LanguageServerError("Language server is not running")
        LOGGER.debug("--> %s", _describe(payload))
        writer.write(encode_message(payload))
        await writer.drain()

    async def _read_loop(self) -> None:
        reader = self._reader
        assert reader is not None
        try:
            while True:
                message = await read_message(reader)
                if message is None:
                    LOGGER.info("Language server closed its output stream")
                    break
                LOGGER.debug("<-- %s", _describe(message))
                await self._dispatch(message)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.warning("Language server connection failed: %s", exc)
            self._fail_pending(LanguageServerError(str(exc)))
            return
        self._fail_pending(LanguageServerError("Language server exited"))

    async def _dispatch(self, message: Mapping[str, Any]) -> None:
        if "method" in message:
            method = message.get("method")
            if "id" in message:
                # server -> client request; nothing here is supported beyond acknowledging it
                LOGGER.debug("Answering server request %s with null", method)
                await self._send({"jsonrpc": "2.0", "id": message["id"], "result": None})
            else:
                LOGGER.debug("Server notification %s", method)
            return
        request_id = message.get("id")
        future = self._pending.get(request_id) if isinstance(request_id, int) else None
        if future is None or future.done():
            return
        error = message.get("error")
        if error:
            detail = error.get("message") if isinstance(error, Mapping) else error
            future.set_exception(LanguageServerError(f"Server error: {detail}"))
        else:
            future.set_result(message.get("result"))

    def _fail_pending(self, exc: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(exc)
        self._pending.clear()


def _describe(message: Mapping[str, Any]) -> str:
    method = message.get("method")
    request_id = message.get("id")
    if method:
        return f"{method} #{request_id}" if request_id is not None else str(method)
    return f"response #{request_id}"

class LanguageServerHoverService:
    """Adapts :class:`LanguageServerClient` to the hover service contract."""

    def __init__(self, client: LanguageServerClient) -> None:
        self._client = client

    @property
    def client(self) -> LanguageServerClient:
        return self._client

    async def query(self, document_id: str, line: int, character: int) -> list[HoverFragment] | None:
        fragments = await self._client.hover(document_id, line, character)
        return fragments or None
