"""RabbitMQ publisher for outbound notification events"""
import json
import logging
import pika
from pika.exceptions import AMQPError

from carecoord import config
from carecoord.notifications.events import DomainEvent
from carecoord.notifications.sink import Publisher

logger = logging.getLogger(__name__)


class RabbitMQPublisher(Publisher):
    """Publishes events to a durable topic exchange, routing key = event kind"""

    def __init__(self):
        self.host = config.RABBITMQ_HOST
        self.port = config.RABBITMQ_PORT
        self.user = config.RABBITMQ_USER
        self.password = config.RABBITMQ_PASSWORD
        self.exchange = config.RABBITMQ_NOTIFY_EXCHANGE
        self.connection = None
        self.channel = None

    def connect(self):
        credentials = pika.PlainCredentials(self.user, self.password)
        parameters = pika.ConnectionParameters(
            host=self.host,
            port=self.port,
            credentials=credentials,
            heartbeat=600,
            blocked_connection_timeout=300
        )

        self.connection = pika.BlockingConnection(parameters)
        self.channel = self.connection.channel()
        self.channel.exchange_declare(
            exchange=self.exchange,
            exchange_type='topic',
            durable=True
        )
        self.channel.confirm_delivery()
        logger.info(f"Connected to RabbitMQ {self.host}:{self.port}, exchange {self.exchange}")

    def publish(self, event: DomainEvent) -> None:
        if self.channel is None or self.channel.is_closed:
            self.connect()
        try:
            self.channel.basic_publish(
                exchange=self.exchange,
                routing_key=event.kind.value,
                body=json.dumps(event.to_message(), default=str),
                properties=pika.BasicProperties(
                    content_type="application/json",
                    delivery_mode=2,
                    message_id=str(event.id),
                ),
            )
        except AMQPError:
            # force a reconnect on the next attempt
            self.close()
            raise

    def close(self) -> None:
        try:
            if self.connection and not self.connection.is_closed:
                self.connection.close()
        except AMQPError as e:
            logger.warning(f"Error closing RabbitMQ connection: {e}")
        self.connection = None
        self.channel = None
