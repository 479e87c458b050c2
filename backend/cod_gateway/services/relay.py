"""Byte-for-byte relay of an upstream event stream to the downstream client.

Once the first chunk is out the response status is already 200, so a failure
mid-stream can only be reported in-band: the relay writes one final
``data: {"error": "Streaming interrupted"}`` event and closes. Clients that
parse the stream must treat that line as a terminal error.
"""
import codecs
from contextlib import aclosing
from typing import AsyncIterator, Protocol

import structlog

from cod_gateway.observability import STREAM_INTERRUPTIONS
from cod_gateway.providers.fireworks import UpstreamStream

logger = structlog.get_logger()

STREAM_INTERRUPTED_EVENT = 'data: {"error": "Streaming interrupted"}\n\n'


class ChunkSink(Protocol):
    async def write(self, chunk: str) -> None: ...

    async def close(self) -> None: ...


async def decode_chunks(source: AsyncIterator[bytes], encoding: str = "utf-8") -> AsyncIterator[str]:
    # Incremental decoder keeps partial multi-byte sequences across chunk boundaries
    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
    async for raw in source:
        text = decoder.decode(raw)
        if text:
            yield text
    tail = decoder.decode(b"", final=True)
    if tail:
        yield tail


async def relay_stream(handle: UpstreamStream) -> AsyncIterator[str]:
    """Yield decoded upstream chunks in arrival order, ending with the error event on failure.

    The upstream handle is closed whichever way the stream ends, including
    cancellation when the inbound client goes away.
    """
    chunks = 0
    try:
        async for text in decode_chunks(handle.iter_bytes(), handle.encoding):
            chunks += 1
            yield text
    except Exception as e:
        STREAM_INTERRUPTIONS.inc()
        logger.error("Streaming interrupted", error=str(e), chunks_relayed=chunks)
        yield STREAM_INTERRUPTED_EVENT
    finally:
        await handle.aclose()


async def relay(handle: UpstreamStream, sink: ChunkSink) -> None:
    """Pump ``handle`` into ``sink`` one chunk per write, then close the sink exactly once."""
    try:
        async with aclosing(relay_stream(handle)) as chunks:
            async for text in chunks:
                await sink.write(text)
    finally:
        await sink.close()
