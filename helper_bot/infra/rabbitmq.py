"""
RabbitMQ Updates Consumer

Subscribes the bot's durable queue to the platform's topic exchange and
feeds each update to a handler. Connection loss is detected by a
watchdog on a fixed interval, which reconnects and resubscribes.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractIncomingMessage, AbstractQueue

from helper_bot.config import Settings, get_settings

logger = logging.getLogger(__name__)

UpdateHandler = Callable[[bytes], Awaitable[Any]]


class UpdatesConsumer:
    """
    Consumer of ``bot_<user>_updates``.

    Ack policy:
    - handler returned a successful result -> ack
    - payload rejected by the handler (ValueError) -> reject without requeue
    - handler failed or returned ``success=False`` -> nack with requeue
    """

    def __init__(self, handler: UpdateHandler, settings: Optional[Settings] = None):
        """Initialize consumer.

        Args:
            handler: Coroutine function receiving the raw message body
            settings: Queue settings (defaults to cached settings)
        """
        self._settings = settings or get_settings()
        self._handler = handler
        self._connection: Optional[AbstractConnection] = None
        self._channel: Optional[AbstractChannel] = None
        self._queue: Optional[AbstractQueue] = None
        self._consumer_tag: Optional[str] = None
        self._watchdog: Optional[asyncio.Task] = None
        self._closing = False

    @property
    def queue_name(self) -> str:
        return self._settings.bot_queue_name

    @property
    def is_ready(self) -> bool:
        """Connected with an active consumer."""
        return (
            self._connection is not None
            and not self._connection.is_closed
            and self._consumer_tag is not None
        )

    async def connect(self) -> None:
        """Open the connection and channel (one message in flight)."""
        self._connection = await aio_pika.connect(self._settings.rabbitmq_url)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=1)
        logger.info("Connected to RabbitMQ")

    async def setup_queue(self) -> AbstractQueue:
        """Declare the bot queue and bind it to the updates exchange."""
        if self._channel is None:
            await self.connect()
        assert self._channel is not None

        self._queue = await self._channel.declare_queue(
            self.queue_name,
            durable=True,
            arguments={"x-message-ttl": self._settings.rabbitmq_message_ttl_ms},
        )

        exchange_name = self._settings.rabbitmq_updates_exchange
        if exchange_name:
            exchange = await self._channel.declare_exchange(
                exchange_name,
                aio_pika.ExchangeType.TOPIC,
                durable=True,
            )
            await self._queue.bind(exchange, routing_key=self._settings.bot_routing_key)
            logger.info(
                f"Queue {self.queue_name} bound to {exchange_name} "
                f"with routing key {self._settings.bot_routing_key}"
            )
        else:
            logger.warning("No updates exchange configured, queue left unbound")

        return self._queue

    async def subscribe(self) -> None:
        """Declare topology and start consuming."""
        queue = await self.setup_queue()
        self._consumer_tag = await queue.consume(self._on_message)
        logger.info(f"Consuming updates from {self.queue_name}")

    async def start(self) -> None:
        """Connect, subscribe and start the reconnect watchdog."""
        self._closing = False
        await self.connect()
        await self.subscribe()
        if self._watchdog is None:
            self._watchdog = asyncio.create_task(self._watch())

    async def _watch(self) -> None:
        """Reconnect on a fixed interval while the connection is down."""
        while not self._closing:
            await asyncio.sleep(self._settings.rabbitmq_reconnect_interval)
            if self._closing or self.is_ready:
                continue

            logger.warning("RabbitMQ connection lost, reconnecting")
            try:
                await self._drop_connection()
                await self.connect()
                await self.subscribe()
                logger.info("RabbitMQ reconnected")
            except Exception as e:
                logger.error(
                    f"Reconnect failed, retrying in "
                    f"{self._settings.rabbitmq_reconnect_interval}s: {e}"
                )

    async def _on_message(self, message: AbstractIncomingMessage) -> None:
        """Run the handler and settle the delivery."""
        try:
            result = await self._handler(message.body)
        except ValueError as e:
            logger.error(f"Rejecting malformed update: {e}")
            await message.reject(requeue=False)
            return
        except Exception as e:
            logger.exception(f"Update handling failed, requeueing: {e}")
            await message.nack(requeue=True)
            return

        if getattr(result, "success", True):
            await message.ack()
        else:
            logger.warning(f"Update not processed, requeueing: {getattr(result, 'error', None)}")
            await message.nack(requeue=True)

    async def _drop_connection(self) -> None:
        self._consumer_tag = None
        self._queue = None
        self._channel = None
        connection, self._connection = self._connection, None
        if connection is not None and not connection.is_closed:
            try:
                await connection.close()
            except Exception as e:
                logger.debug(f"Error closing stale RabbitMQ connection: {e}")

    async def close(self) -> None:
        """Stop the watchdog and close the connection."""
        self._closing = True
        if self._watchdog is not None:
            self._watchdog.cancel()
            try:
                await self._watchdog
            except asyncio.CancelledError:
                pass
            self._watchdog = None

        if self._queue is not None and self._consumer_tag is not None:
            try:
                await self._queue.cancel(self._consumer_tag)
            except Exception as e:
                logger.debug(f"Error cancelling consumer: {e}")

        await self._drop_connection()
        logger.info("RabbitMQ connection closed")
