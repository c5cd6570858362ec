"""
RabbitMQ Consumer for order lifecycle notification events
"""
import pika
import json
import logging
import sys

from order_saga.config import settings
from order_saga.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

ROUTING_KEYS = (
    "order.confirmed",
    "order.cancelled",
    "refund.processed",
    "return.created",
    "inventory.low_stock",
)


def callback(ch, method, properties, body):
    """
    Callback function to process notification events
    
    Args:
        ch: Channel
        method: Method
        properties: Properties
        body: Message body (JSON string)
    """
    try:
        event = json.loads(body)
        event_id = event.get("event_id")
        event_type = event.get("event_type")
        
        logger.info("Received event: %s (ID: %s)", event_type, event_id)
        
        success = NotificationService().handle_event(event_type, event.get("data", {}))
        
        if success:
            ch.basic_ack(delivery_tag=method.delivery_tag)
            logger.info("Event %s processed successfully", event_id)
        else:
            # Reject and don't requeue (send to DLQ if configured)
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
            logger.error("Event %s processing failed", event_id)
            
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON: %s", e)
        ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
    except Exception:
        logger.exception("Error processing event")
        ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)


def start_consumer():
    """
    Start RabbitMQ consumer
    
    Connects to RabbitMQ and consumes every notification routing key
    """
    connection = None
    try:
        logger.info("Connecting to RabbitMQ: %s", settings.RABBITMQ_URL)
        connection = pika.BlockingConnection(
            pika.URLParameters(settings.RABBITMQ_URL)
        )
        channel = connection.channel()
        
        channel.exchange_declare(
            exchange=settings.RABBITMQ_EXCHANGE,
            exchange_type='topic',
            durable=True
        )
        channel.queue_declare(
            queue=settings.RABBITMQ_QUEUE,
            durable=True
        )
        for routing_key in ROUTING_KEYS:
            channel.queue_bind(
                exchange=settings.RABBITMQ_EXCHANGE,
                queue=settings.RABBITMQ_QUEUE,
                routing_key=routing_key
            )
            logger.info("Queue %s bound to %s", settings.RABBITMQ_QUEUE, routing_key)
        
        # Set prefetch count (QoS)
        channel.basic_qos(prefetch_count=5)
        
        channel.basic_consume(
            queue=settings.RABBITMQ_QUEUE,
            on_message_callback=callback,
            auto_ack=False  # Manual acknowledgement
        )
        
        logger.info("%s notification consumer started", settings.SERVICE_NAME)
        channel.start_consuming()
        
    except KeyboardInterrupt:
        logger.info("Consumer stopped by user")
        if connection is not None and connection.is_open:
            connection.close()
        sys.exit(0)
    except pika.exceptions.AMQPError as e:
        logger.error("Error starting consumer: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    start_consumer()
