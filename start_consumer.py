"""
RabbitMQ Consumer Entry Point
Starts the family membership sync consumer
"""
import logging

from carecoord import config
from carecoord.messaging.consumer import start_consumer

if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL)
    start_consumer()
