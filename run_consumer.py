#!/usr/bin/env python
"""
Script to run RabbitMQ consumer for order notifications
"""
import logging

from order_saga.config import settings
from order_saga.consumers.notification_consumer import start_consumer

if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    start_consumer()
