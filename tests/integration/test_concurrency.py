"""
Integration tests for concurrent consumers.
"""

import asyncio

import pytest

from docqueue.queue import Queue


class TestConcurrentConsumers:
    """Mutual exclusion of concurrent claims."""

    @pytest.mark.asyncio
    async def test_single_message_single_winner(self, queue: Queue):
        """Test that one message goes to exactly one of many consumers."""
        await queue.add("contended")

        results = await asyncio.gather(*(queue.get() for _ in range(10)))
        winners = [message for message in results if message is not None]

        assert len(winners) == 1
        assert winners[0].payload == "contended"
        assert winners[0].tries == 1

    @pytest.mark.asyncio
    async def test_many_messages_no_duplicates(self, queue: Queue):
        """Test that concurrent consumers never share a message."""
        await queue.add([f"job-{i}" for i in range(20)])

        results = await asyncio.gather(*(queue.get() for _ in range(30)))
        winners = [message for message in results if message is not None]

        assert len(winners) == 20
        assert len({message.id for message in winners}) == 20
        assert len({message.ack for message in winners}) == 20
        assert await queue.size() == 0
        assert await queue.in_flight() == 20

    @pytest.mark.asyncio
    async def test_concurrent_acks_of_one_token(self, queue: Queue):
        """Test that only one of several acks of the same token succeeds."""
        await queue.add("ack race")
        message = await queue.get()

        results = await asyncio.gather(
            *(queue.ack(message.ack) for _ in range(5)),
            return_exceptions=True,
        )
        successes = [r for r in results if r == message.id]

        assert len(successes) == 1
        assert await queue.done() == 1
