"""
Scheme-dispatching streaming download engine.

A Retriever turns a ResourceDescriptor into an ordered, finite sequence of
byte chunks, each paired with the running byte count and the total size. The
total is resolved once when the stream opens and stays constant for the call.

Supported schemes:
- file: local path (percent-decoded), total = file length
- http/https: streaming GET with the descriptor's auth_header, total = the
  file_size hint when given, else Content-Length. Bodies are delivered as
  sent on the wire (no Content-Encoding decoding), so the running count
  matches Content-Length.

Any other scheme raises UnsupportedSchemeError before any I/O. Instances hold
only immutable configuration, so one Retriever may serve concurrent calls.
"""
from __future__ import annotations

from contextlib import aclosing, closing
import inspect
import logging
import os
import tempfile
from typing import Any, AsyncIterator, Callable, Iterator, Mapping, NamedTuple, Optional, Union
from urllib.parse import unquote, urlparse

import anyio
import httpx

from connectors.errors import DownloadError, LinkExpiredError, UnsupportedSchemeError
from infra.retrieval.descriptor import ResourceDescriptor

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
SUPPORTED_SCHEMES = ("file", "http", "https")
PROBE_TIMEOUT_SECONDS = 30

DescriptorLike = Union[ResourceDescriptor, Mapping[str, Any]]
OnChunk = Callable[[bytes, int, Optional[int]], Any]


class Chunk(NamedTuple):
    data: bytes
    retrieved: int
    total: Optional[int]


def _local_path(url: str) -> str:
    return unquote(urlparse(url).path)


def _content_length(resp: httpx.Response) -> Optional[int]:
    value = resp.headers.get("content-length")
    return int(value) if value and value.isdigit() else None


def _request_headers(descriptor: ResourceDescriptor) -> httpx.Headers:
    # Ask for the stored bytes; a caller-supplied Accept-Encoding still wins.
    headers = httpx.Headers({"Accept-Encoding": "identity"})
    headers.update(descriptor.auth_header)
    return headers


def _suffix(descriptor: ResourceDescriptor) -> str:
    name = descriptor.file_name or os.path.basename(_local_path(descriptor.url))
    return os.path.splitext(name)[1]


class Retriever:
    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        download_dir: Optional[str] = None,
        enforce_expiry: bool = False,
        transport: Optional[httpx.BaseTransport] = None,
        async_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.chunk_size = chunk_size
        self.download_dir = download_dir
        self.enforce_expiry = enforce_expiry
        self.transport = transport
        self.async_transport = async_transport

    @classmethod
    def from_settings(cls, settings) -> "Retriever":
        return cls(
            chunk_size=settings.RETRIEVER_CHUNK_SIZE,
            download_dir=settings.RETRIEVER_DOWNLOAD_DIR,
            enforce_expiry=settings.RETRIEVER_ENFORCE_EXPIRY,
        )

    def _prepare(self, descriptor: DescriptorLike) -> ResourceDescriptor:
        descriptor = ResourceDescriptor.coerce(descriptor)
        if descriptor.scheme not in SUPPORTED_SCHEMES:
            raise UnsupportedSchemeError(descriptor.scheme)
        if descriptor.scheme != "file":
            try:
                httpx.URL(descriptor.url)
            except httpx.InvalidURL as e:
                raise DownloadError(descriptor.url, reason=f"invalid URL: {e}") from e
        if self.enforce_expiry and descriptor.is_expired():
            raise LinkExpiredError(descriptor.url, reason=f"link expired at {descriptor.expires.isoformat()}")
        return descriptor

    # Synchronous streaming
    def iter_chunks(self, descriptor: DescriptorLike) -> Iterator[Chunk]:
        """Validate eagerly, then return a lazy chunk generator.

        Closing the generator early (or abandoning it) releases the open file
        or connection.
        """
        descriptor = self._prepare(descriptor)
        if descriptor.scheme == "file":
            return self._iter_file(descriptor)
        return self._iter_http(descriptor)

    def _iter_file(self, descriptor: ResourceDescriptor) -> Iterator[Chunk]:
        try:
            f = open(_local_path(descriptor.url), "rb")
        except OSError as e:
            raise DownloadError(descriptor.url, reason=str(e)) from e
        with f:
            total = os.fstat(f.fileno()).st_size
            retrieved = 0
            while True:
                data = f.read(self.chunk_size)
                if not data:
                    break
                retrieved += len(data)
                yield Chunk(data, retrieved, total)

    def _iter_http(self, descriptor: ResourceDescriptor) -> Iterator[Chunk]:
        url = descriptor.url
        try:
            with httpx.Client(timeout=None, follow_redirects=True, transport=self.transport) as client:
                with client.stream("GET", url, headers=_request_headers(descriptor)) as resp:
                    if not resp.is_success:
                        raise DownloadError(url, status=resp.status_code, reason=resp.reason_phrase)
                    total = descriptor.file_size or _content_length(resp)
                    retrieved = 0
                    for data in resp.iter_raw():
                        if not data:
                            continue
                        retrieved += len(data)
                        yield Chunk(data, retrieved, total)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DownloadError(url, reason=str(e)) from e

    def retrieve(self, descriptor: DescriptorLike, on_chunk: OnChunk) -> None:
        """Stream the resource, calling ``on_chunk(bytes, retrieved, total)`` per chunk."""
        with closing(self.iter_chunks(descriptor)) as chunks:
            for chunk in chunks:
                on_chunk(chunk.data, chunk.retrieved, chunk.total)

    def download(self, descriptor: DescriptorLike, on_chunk: Optional[OnChunk] = None) -> str:
        """Stream the resource into a new temporary file and return its path.

        On failure the partial file is removed before the error propagates.
        """
        descriptor = self._prepare(descriptor)
        chunks = self.iter_chunks(descriptor)
        fd, path = tempfile.mkstemp(prefix="browse-", suffix=_suffix(descriptor), dir=self.download_dir)
        try:
            with os.fdopen(fd, "wb") as out, closing(chunks):
                for chunk in chunks:
                    out.write(chunk.data)
                    if on_chunk is not None:
                        on_chunk(chunk.data, chunk.retrieved, chunk.total)
        except BaseException:
            os.unlink(path)
            raise
        logger.info("Downloaded %s to %s", descriptor.file_name or descriptor.url, path)
        return path

    # Asynchronous streaming
    def aiter_chunks(self, descriptor: DescriptorLike) -> AsyncIterator[Chunk]:
        descriptor = self._prepare(descriptor)
        if descriptor.scheme == "file":
            return self._aiter_file(descriptor)
        return self._aiter_http(descriptor)

    async def _aiter_file(self, descriptor: ResourceDescriptor) -> AsyncIterator[Chunk]:
        path = _local_path(descriptor.url)
        try:
            f = await anyio.open_file(path, "rb")
        except OSError as e:
            raise DownloadError(descriptor.url, reason=str(e)) from e
        async with f:
            total = (await anyio.Path(path).stat()).st_size
            retrieved = 0
            while True:
                data = await f.read(self.chunk_size)
                if not data:
                    break
                retrieved += len(data)
                yield Chunk(data, retrieved, total)

    async def _aiter_http(self, descriptor: ResourceDescriptor) -> AsyncIterator[Chunk]:
        url = descriptor.url
        try:
            async with httpx.AsyncClient(timeout=None, follow_redirects=True, transport=self.async_transport) as client:
                async with client.stream("GET", url, headers=_request_headers(descriptor)) as resp:
                    if not resp.is_success:
                        raise DownloadError(url, status=resp.status_code, reason=resp.reason_phrase)
                    total = descriptor.file_size or _content_length(resp)
                    retrieved = 0
                    async for data in resp.aiter_raw():
                        if not data:
                            continue
                        retrieved += len(data)
                        yield Chunk(data, retrieved, total)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DownloadError(url, reason=str(e)) from e

    async def aretrieve(self, descriptor: DescriptorLike, on_chunk: OnChunk) -> None:
        async with aclosing(self.aiter_chunks(descriptor)) as chunks:
            async for chunk in chunks:
                result = on_chunk(chunk.data, chunk.retrieved, chunk.total)
                if inspect.isawaitable(result):
                    await result

    async def adownload(self, descriptor: DescriptorLike, on_chunk: Optional[OnChunk] = None) -> str:
        descriptor = self._prepare(descriptor)
        chunks = self.aiter_chunks(descriptor)
        fd, path = tempfile.mkstemp(prefix="browse-", suffix=_suffix(descriptor), dir=self.download_dir)
        os.close(fd)
        try:
            async with await anyio.open_file(path, "wb") as out, aclosing(chunks):
                async for chunk in chunks:
                    await out.write(chunk.data)
                    if on_chunk is not None:
                        result = on_chunk(chunk.data, chunk.retrieved, chunk.total)
                        if inspect.isawaitable(result):
                            await result
        except BaseException:
            await anyio.Path(path).unlink(missing_ok=True)
            raise
        logger.info("Downloaded %s to %s", descriptor.file_name or descriptor.url, path)
        return path

    # Probing
    def can_retrieve(self, url: str, headers: Optional[Mapping[str, str]] = None) -> bool:
        """Check reachability without transferring the resource.

        Local files are checked for existence; remote URLs get a one-byte
        ranged GET. Never raises for unreachable or unsupported URLs.
        """
        scheme = urlparse(url).scheme.lower()
        if scheme == "file":
            return os.path.isfile(_local_path(url))
        if scheme not in SUPPORTED_SCHEMES:
            return False
        probe_headers = dict(headers or {})
        probe_headers["Range"] = "bytes=0-0"
        try:
            with httpx.Client(timeout=PROBE_TIMEOUT_SECONDS, follow_redirects=True, transport=self.transport) as client:
                with client.stream("GET", url, headers=probe_headers) as resp:
                    return resp.is_success
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Probe of %s failed: %s", url, e)
            return False
