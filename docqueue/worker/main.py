"""
Worker process for consuming messages.

The worker leases one message at a time, runs its handler while pinging
the lease, and acknowledges it on success. On failure it does nothing:
the lease expires, the message is redelivered, and once it runs out of
retries the queue hands it to the dead queue.
"""

import asyncio
import logging
import os
import signal

from docqueue.config import get_settings
from docqueue.constants import SPAN_HANDLE_MESSAGE
from docqueue.db import close_db, get_engine, init_db
from docqueue.errors import UnidentifiedAckError
from docqueue.observability.logging import bind_context, clear_context, setup_logging
from docqueue.observability.tracing import get_tracer, instrument_sqlalchemy, setup_tracing
from docqueue.queue import Queue
from docqueue.types.message import Message
from docqueue.worker.handlers import MessageHandler, dispatch_message

logger = logging.getLogger(__name__)


class Worker:
    """
    Message worker that polls a queue and runs handlers.

    Features:
    - Atomic leasing through Queue.get
    - Heartbeat pings to keep the lease alive for long-running handlers
    - Graceful shutdown on SIGTERM/SIGINT
    - Redelivery left to lease expiry
    """

    def __init__(
        self,
        queue: Queue,
        handler: MessageHandler = dispatch_message,
        worker_id: str | None = None,
        poll_interval: float | None = None,
        heartbeat_interval: float | None = None,
    ):
        """
        Initialize the worker.

        Args:
            queue: The queue to consume.
            handler: Coroutine run for each message; raising means failure.
            worker_id: Identifier used in logs. Defaults to hostname + PID.
            poll_interval: Seconds between polls when the queue is empty.
            heartbeat_interval: Seconds between pings while a handler runs.
                Should be well below the queue's visibility window.
        """
        settings = get_settings()

        self.queue = queue
        self.handler = handler
        self.worker_id = worker_id or f"{os.uname().nodename}-{os.getpid()}"
        self.poll_interval = (
            poll_interval if poll_interval is not None
            else settings.worker_poll_interval_seconds
        )
        self.heartbeat_interval = (
            heartbeat_interval if heartbeat_interval is not None
            else settings.worker_heartbeat_interval_seconds
        )

        self._running = False

    async def start(self) -> None:
        """Run the polling loop until stop() is called."""
        bind_context(worker_id=self.worker_id, queue=self.queue.name)
        logger.info("Worker starting", extra={"poll_interval": self.poll_interval})

        self._running = True

        while self._running:
            try:
                processed = await self.run_once()

                if not processed:
                    await asyncio.sleep(self.poll_interval)

            except Exception as e:
                logger.exception(f"Error in worker loop: {e}")
                await asyncio.sleep(self.poll_interval)

        logger.info("Worker stopped")
        clear_context()

    async def stop(self) -> None:
        """Stop the worker after the current message."""
        logger.info("Worker stopping")
        self._running = False

    async def run_once(self) -> bool:
        """
        Lease and process at most one message.

        Returns:
            True if a message was leased, False if the queue was empty.
        """
        message = await self.queue.get()
        if message is None:
            return False

        await self._process(message)
        return True

    async def _process(self, message: Message) -> None:
        """
        Run the handler for one message under a heartbeat.

        Args:
            message: The leased message.
        """
        heartbeat = asyncio.create_task(self._heartbeat(message))

        try:
            with get_tracer().start_as_current_span(SPAN_HANDLE_MESSAGE) as span:
                span.set_attribute("queue", self.queue.name)
                span.set_attribute("message_id", message.id)
                span.set_attribute("tries", message.tries)

                await self.handler(message)

        except Exception as e:
            # Not acknowledged: the lease runs out and the message comes back.
            logger.warning(
                "Message handler failed",
                extra={"message_id": message.id, "tries": message.tries, "error": str(e)}
            )
            return

        finally:
            heartbeat.cancel()
            try:
                await heartbeat
            except asyncio.CancelledError:
                pass

        try:
            await self.queue.ack(message.ack)
        except UnidentifiedAckError:
            logger.warning(
                "Lease expired before acknowledgement, message will be redelivered",
                extra={"message_id": message.id}
            )
            return

        logger.info(
            "Message processed",
            extra={"message_id": message.id, "tries": message.tries}
        )

    async def _heartbeat(self, message: Message) -> None:
        """
        Periodically extend the lease of the message being processed.

        Stops quietly once the lease is gone; the ack will then fail too and
        report it. Store errors are logged and the next beat tries again.
        """
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.queue.ping(message.ack)
            except UnidentifiedAckError:
                logger.warning("Lease lost during processing", extra={"message_id": message.id})
                return
            except Exception as e:
                logger.exception(f"Error in heartbeat: {e}", extra={"message_id": message.id})
                continue
            logger.debug("Extended lease", extra={"message_id": message.id})


async def run_async() -> None:
    """Run the worker asynchronously."""
    settings = get_settings()

    setup_logging()
    if settings.otel_enabled:
        setup_tracing()
        instrument_sqlalchemy(get_engine())

    sessions = await init_db()

    dead_queue = None
    if settings.dead_queue_suffix:
        dead_queue = Queue(sessions, f"{settings.worker_queue_name}{settings.dead_queue_suffix}")
    queue = Queue(sessions, settings.worker_queue_name, dead_queue=dead_queue)
    await queue.create_indexes()

    worker = Worker(queue)

    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(worker.stop())
        )

    try:
        await worker.start()
    finally:
        await close_db()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
