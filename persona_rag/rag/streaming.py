"""
Fragment Relay

Moves generated text from an upstream stream to the HTTP response through
a bounded queue.

A producer task reads the upstream stream and pushes fragments into the
queue; the consumer (the response body) pulls them one at a time. The
consumer can tell a normal end of stream from a failed one, and closing the
consumer cancels the producer so an abandoned stream is not drained.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator

from persona_rag.exceptions import UpstreamGenerationFailure

logger = logging.getLogger(__name__)

# One fragment in flight between producer and consumer
DEFAULT_CHANNEL_SIZE = 1

_END_OF_STREAM = object()


@dataclass
class _StreamFailed:
    error: Exception


async def _produce(source: AsyncIterator[str], channel: asyncio.Queue) -> None:
    try:
        async for fragment in source:
            await channel.put(fragment)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        await channel.put(_StreamFailed(e))
    else:
        await channel.put(_END_OF_STREAM)
    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()


async def relay_fragments(
    source: AsyncIterator[str],
    maxsize: int = DEFAULT_CHANNEL_SIZE,
) -> AsyncIterator[str]:
    """
    Relay fragments from ``source`` in arrival order.

    Args:
        source: Upstream fragment stream.
        maxsize: Channel capacity.

    Yields:
        Fragments, unchanged.

    Raises:
        UpstreamGenerationFailure: If ``source`` fails. Every fragment
            produced before the failure is yielded first.
    """
    channel: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
    producer = asyncio.create_task(_produce(source, channel))

    try:
        while True:
            item = await channel.get()
            if item is _END_OF_STREAM:
                return
            if isinstance(item, _StreamFailed):
                logger.error(f"Answer stream failed mid-flight: {item.error}")
                raise UpstreamGenerationFailure(
                    f"Answer stream failed: {item.error}"
                ) from item.error
            yield item
    finally:
        if not producer.done():
            producer.cancel()
        # asyncio.wait leaves a cancellation of this task to propagate
        await asyncio.wait([producer])
        if not producer.cancelled():
            producer.result()
