"""File-upload staging for multipart requests.

Hey future me - this is the ONLY pipeline step that touches the filesystem.

For every `multipart/form-data` request:
1. Make sure tmp/ and tmp/.incoming/ exist (idempotent mkdir)
2. Stream each file part straight to tmp/.incoming/<uuid>.part with aiofiles
   (never buffered in memory beyond one network chunk)
3. Abort with 413 the moment a file crosses max_file_size, 408 if the whole
   upload takes longer than the upload timeout, 400 on a broken body.
   Partial files are deleted and the handler is NEVER called.
4. Move finished files to tmp/<uuid><ext> and hand the handler
   `request.state.files` ({field: [StagedFile, ...]}) and
   `request.state.form` ({field: value}).

The body is consumed here, so handlers read the staged files instead of
calling request.form(). Handlers own the staged files; leftovers are removed
by the hourly sweep.
"""

import asyncio
import logging
import re
from contextlib import suppress
from pathlib import Path
from typing import Any

import aiofiles
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.datastructures import Headers
from starlette.requests import ClientDisconnect
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from magical_music.domain.exceptions import UploadRejectedError
from magical_music.domain.value_objects import StagedFile
from magical_music.infrastructure.storage import TempUploadDirectory

logger = logging.getLogger(__name__)

MAX_FIELD_SIZE = 1024 * 1024
_SAFE_SUFFIX = re.compile(r"^\.[A-Za-z0-9]{1,16}$")


def _safe_suffix(filename: str) -> str:
    suffix = Path(filename).suffix
    return suffix.lower() if _SAFE_SUFFIX.match(suffix) else ""


class _Part:
    """Parsing state of the multipart section currently being read."""

    def __init__(self) -> None:
        self.name = ""
        self.filename: str | None = None
        self.content_type = "application/octet-stream"
        self.size = 0
        self.field_data = bytearray()
        self.path: Path | None = None
        self.handle: Any = None
        self.ignored = False


class MultipartStager:
    """Feeds body chunks to python-multipart and writes file parts to staging.

    python-multipart calls back synchronously while parsing a chunk; the
    callbacks only queue events and the async drain() does the file I/O.
    """

    def __init__(
        self,
        temp_dir: TempUploadDirectory,
        boundary: bytes,
        max_file_size: int,
        max_field_size: int = MAX_FIELD_SIZE,
    ) -> None:
        self._temp_dir = temp_dir
        self._max_file_size = max_file_size
        self._max_field_size = max_field_size
        self._events: list[tuple[str, Any]] = []
        self._header_field = bytearray()
        self._header_value = bytearray()
        self._headers: list[tuple[bytes, bytes]] = []
        self._part: _Part | None = None
        self._staged_paths: list[Path] = []
        self.files: dict[str, list[StagedFile]] = {}
        self.fields: dict[str, str] = {}
        self._parser = MultipartParser(
            boundary,
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
            },
        )

    # python-multipart callbacks (sync) -----------------------------------

    def _on_part_begin(self) -> None:
        self._headers = []
        self._events.append(("begin", None))

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._events.append(("data", data[start:end]))

    def _on_part_end(self) -> None:
        self._events.append(("end", None))

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers.append((bytes(self._header_field).lower(), bytes(self._header_value)))
        self._header_field.clear()
        self._header_value.clear()

    def _on_headers_finished(self) -> None:
        self._events.append(("headers", list(self._headers)))

    # async processing ------------------------------------------------------

    async def consume(self, receive: Receive) -> None:
        """Read the whole request body from `receive`."""
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                raise ClientDisconnect()
            chunk = message.get("body", b"")
            more_body = message.get("more_body", False)
            if chunk:
                self._write(chunk)
                await self._drain()
        try:
            self._parser.finalize()
        except MultipartParseError as exc:
            raise UploadRejectedError(f"Malformed multipart body: {exc}") from exc
        await self._drain()

    def _write(self, chunk: bytes) -> None:
        try:
            self._parser.write(chunk)
        except MultipartParseError as exc:
            raise UploadRejectedError(f"Malformed multipart body: {exc}") from exc

    async def _drain(self) -> None:
        events, self._events = self._events, []
        for kind, payload in events:
            if kind == "begin":
                self._part = _Part()
            elif kind == "headers":
                await self._start_part(payload)
            elif kind == "data":
                await self._feed_part(payload)
            elif kind == "end":
                await self._finish_part()

    async def _start_part(self, headers: list[tuple[bytes, bytes]]) -> None:
        part = self._part
        if part is None:
            return
        header_map = dict(headers)
        _, options = parse_options_header(header_map.get(b"content-disposition", b""))
        part.name = options.get(b"name", b"").decode("utf-8", errors="replace")
        raw_filename = options.get(b"filename")
        if raw_filename is None:
            return

        part.filename = Path(raw_filename.decode("utf-8", errors="replace")).name
        if not part.filename:
            # Browsers send an empty file input as filename="".
            part.ignored = True
            return
        if b"content-type" in header_map:
            part.content_type = header_map[b"content-type"].decode("latin-1")
        part.path = self._temp_dir.new_staging_path()
        self._staged_paths.append(part.path)
        part.handle = await aiofiles.open(part.path, "wb")

    async def _feed_part(self, data: bytes) -> None:
        part = self._part
        if part is None or part.ignored:
            return
        part.size += len(data)
        if part.filename is None:
            if part.size > self._max_field_size:
                raise UploadRejectedError(
                    f"Form field '{part.name}' exceeds {self._max_field_size} bytes",
                    status_code=413,
                    field_name=part.name,
                )
            part.field_data += data
            return
        if part.size > self._max_file_size:
            raise UploadRejectedError(
                f"File '{part.filename}' exceeds the {self._max_file_size} byte limit",
                status_code=413,
                field_name=part.name,
            )
        await part.handle.write(data)

    async def _finish_part(self) -> None:
        part, self._part = self._part, None
        if part is None or part.ignored:
            return
        if part.filename is None:
            self.fields[part.name] = part.field_data.decode("utf-8", errors="replace")
            return

        await part.handle.close()
        part.handle = None
        final_path = await asyncio.to_thread(
            self._temp_dir.promote, part.path, _safe_suffix(part.filename)
        )
        self._staged_paths.append(final_path)
        self.files.setdefault(part.name, []).append(
            StagedFile(
                field_name=part.name,
                filename=part.filename,
                content_type=part.content_type,
                size=part.size,
                path=final_path,
            )
        )

    async def discard(self) -> None:
        """Close any open file and delete everything this request staged."""
        if self._part is not None and self._part.handle is not None:
            with suppress(OSError):
                await self._part.handle.close()
        self._part = None
        for path in self._staged_paths:
            await asyncio.to_thread(self._temp_dir.discard, path)
        self._staged_paths.clear()
        self.files.clear()


class UploadStagingMiddleware:
    """Pure ASGI middleware: consumes multipart bodies into staged files."""

    def __init__(
        self,
        app: ASGIApp,
        temp_dir: TempUploadDirectory,
        max_file_size: int = 10 * 1024 * 1024,
        timeout: float = 120.0,
    ) -> None:
        self.app = app
        self.temp_dir = temp_dir
        self.max_file_size = max_file_size
        self.timeout = timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_type, params = parse_options_header(
            Headers(scope=scope).get("content-type", "")
        )
        if content_type != b"multipart/form-data":
            await self.app(scope, receive, send)
            return

        boundary = params.get(b"boundary")
        if not boundary:
            await self._reject(scope, receive, send, UploadRejectedError("Missing multipart boundary"))
            return

        await asyncio.to_thread(self.temp_dir.ensure)
        stager = MultipartStager(self.temp_dir, boundary, self.max_file_size)
        staged = False
        try:
            if self.timeout:
                async with asyncio.timeout(self.timeout):
                    await stager.consume(receive)
            else:
                await stager.consume(receive)
            staged = True
        except UploadRejectedError as exc:
            await self._reject(scope, receive, send, exc)
            return
        except TimeoutError:
            await self._reject(
                scope, receive, send, UploadRejectedError("Upload timed out", status_code=408)
            )
            return
        except ClientDisconnect:
            logger.info("Client disconnected during upload to %s", scope.get("path", ""))
            return
        finally:
            # Also runs on cancellation (request timeout, shutdown) and I/O errors,
            # so no partial file outlives the request.
            if not staged:
                await asyncio.shield(stager.discard())

        state = scope.setdefault("state", {})
        state["files"] = stager.files
        state["form"] = stager.fields
        logger.debug(
            "Staged %d file(s) for %s",
            sum(len(files) for files in stager.files.values()),
            scope.get("path", ""),
        )

        consumed = False

        async def drained() -> Message:
            nonlocal consumed
            if not consumed:
                consumed = True
                return {"type": "http.request", "body": b"", "more_body": False}
            return await receive()

        await self.app(scope, drained, send)

    async def _reject(
        self, scope: Scope, receive: Receive, send: Send, exc: UploadRejectedError
    ) -> None:
        logger.warning(
            "Upload rejected on %s: %s",
            scope.get("path", ""),
            exc.message,
            extra={"status_code": exc.status_code, "field": exc.field_name},
        )
        response = JSONResponse({"message": exc.message}, status_code=exc.status_code)
        await response(scope, receive, send)
