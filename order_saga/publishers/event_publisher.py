"""
RabbitMQ Event Publisher
"""
import pika
import json
import uuid
import logging
from datetime import datetime, timezone
from typing import Dict

from order_saga.config import settings

logger = logging.getLogger(__name__)


class EventPublisher:
    """Publisher for sending order lifecycle events to RabbitMQ"""
    
    def __init__(self):
        self.rabbitmq_url = settings.RABBITMQ_URL
        self.exchange = settings.RABBITMQ_EXCHANGE
    
    def publish(self, event_type: str, routing_key: str, data: Dict) -> bool:
        """
        Publish an event to the topic exchange
        
        Args:
            event_type: Event name, e.g. OrderConfirmed
            routing_key: Topic routing key, e.g. order.confirmed
            data: JSON-serializable event payload
        
        Returns:
            True if the broker confirmed the message, False otherwise
        """
        event = {
            "event_type": event_type,
            "event_id": str(uuid.uuid4()),
            "event_version": "1.0",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": settings.SERVICE_NAME,
            "data": data
        }
        
        connection = None
        try:
            connection = pika.BlockingConnection(
                pika.URLParameters(self.rabbitmq_url)
            )
            channel = connection.channel()
            
            channel.exchange_declare(
                exchange=self.exchange,
                exchange_type='topic',
                durable=True
            )
            
            # Enable publisher confirms
            channel.confirm_delivery()
            
            channel.basic_publish(
                exchange=self.exchange,
                routing_key=routing_key,
                body=json.dumps(event, default=str),
                properties=pika.BasicProperties(
                    delivery_mode=2,  # Persistent message
                    content_type='application/json',
                    correlation_id=event["event_id"]
                ),
                mandatory=True
            )
            
            logger.info("Event published: %s (ID: %s)", event_type, event["event_id"])
            return True
            
        except pika.exceptions.UnroutableError:
            logger.error("Event %s could not be routed to any queue", event_type)
            return False
        except pika.exceptions.AMQPError as e:
            logger.error("Error publishing event %s: %s", event_type, e)
            return False
        finally:
            if connection is not None and connection.is_open:
                connection.close()
