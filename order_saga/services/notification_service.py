"""
Notification Service - renders and sends emails for order lifecycle events
"""
import logging
import smtplib
from email.mime.text import MIMEText
from typing import Dict, Tuple

from python_http_client.exceptions import HTTPError as SendGridHTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from order_saga.config import settings

logger = logging.getLogger(__name__)

SIGNATURE = """
---
Order Management System
"""


class NotificationService:
    """Service for sending notifications"""
    
    def __init__(self, email_service: str = None):
        self.email_service = email_service or settings.EMAIL_SERVICE
    
    def handle_event(self, event_type: str, data: Dict) -> bool:
        """
        Render and send the email for one event
        
        Returns:
            True if handled (sent, or nothing to send), False on failure
        """
        renderers = {
            "OrderConfirmed": self.render_order_confirmation,
            "OrderCancelled": self.render_cancellation_notice,
            "RefundProcessed": self.render_refund_receipt,
            "ReturnCreated": self.render_return_received,
            "LowStockDetected": self.render_low_stock_alert,
        }
        renderer = renderers.get(event_type)
        if renderer is None:
            logger.warning("Unknown event type: %s", event_type)
            return False
        
        to, subject, body = renderer(data)
        if not to:
            logger.info("No recipient for %s; skipping email", event_type)
            return True
        return self.send(to, subject, body)
    
    def render_order_confirmation(self, order: Dict) -> Tuple[str, str, str]:
        lines = "\n".join(
            f"  Product {item['product_id']} x {item['quantity']} @ {item['unit_price']:.2f}"
            for item in order.get("items", [])
        )
        subject = f"Order {order.get('order_number')} Confirmed"
        body = f"""
Hi!

Your payment was received and your order is confirmed:

Order: {order.get('order_number')}
{lines}
Total: {order.get('total_amount', 0):.2f} {settings.CURRENCY}

Thank you for your purchase!
{SIGNATURE}"""
        return order.get("customer_email"), subject, body
    
    def render_cancellation_notice(self, order: Dict) -> Tuple[str, str, str]:
        subject = f"Order {order.get('order_number')} Cancelled"
        body = f"""
Hi!

Your order {order.get('order_number')} has been cancelled and no payment was taken.
If money was deducted, please contact support.
{SIGNATURE}"""
        return order.get("customer_email"), subject, body
    
    def render_refund_receipt(self, refund: Dict) -> Tuple[str, str, str]:
        subject = f"Refund for Order #{refund.get('order_id')}"
        body = f"""
Hi!

A refund of {refund.get('amount', 0):.2f} {settings.CURRENCY} has been issued.

Refund reference: {refund.get('gateway_refund_id')}

It can take 5-7 business days to reach your account.
{SIGNATURE}"""
        return refund.get("customer_email"), subject, body
    
    def render_return_received(self, return_request: Dict) -> Tuple[str, str, str]:
        subject = f"Return Request Received - Order {return_request.get('order_number')}"
        body = f"""
Hi there,

We have received your return request for Order {return_request.get('order_number')}.

Type: {return_request.get('return_type')}
Reason: {return_request.get('reason')}

We will review your request and get back to you shortly.
{SIGNATURE}"""
        return return_request.get("customer_email"), subject, body
    
    def render_low_stock_alert(self, alert: Dict) -> Tuple[str, str, str]:
        items = alert.get("items", [])
        rows = "\n".join(
            f"  Product {item['product_id']}"
            f"{' / variant ' + str(item['variant_id']) if item.get('variant_id') else ''}: "
            f"{item['stock_quantity']} left (reorder {item.get('reorder_quantity') or '-'})"
            for item in items
        )
        subject = f"Inventory Alert: {len(items)} items low on stock"
        body = f"""
Hello Admin,

The following items have fallen below their low stock threshold:

{rows}
{SIGNATURE}"""
        return settings.ADMIN_ALERT_EMAIL, subject, body
    
    def send(self, to: str, subject: str, body: str) -> bool:
        """Send an email through the configured transport"""
        if self.email_service == "console":
            return self._send_console_notification(to, subject, body)
        elif self.email_service == "sendgrid":
            return self._send_sendgrid_notification(to, subject, body)
        elif self.email_service == "smtp":
            return self._send_smtp_notification(to, subject, body)
        logger.error("Unknown email service: %s", self.email_service)
        return False
    
    def _send_console_notification(self, to: str, subject: str, body: str) -> bool:
        """
        Simulate email sending by writing to the log
        
        This is for development/testing purposes
        """
        logger.info("EMAIL NOTIFICATION (Console Mode)\nTo: %s\nSubject: %s\n%s", to, subject, body)
        return True
    
    def _send_sendgrid_notification(self, to: str, subject: str, body: str) -> bool:
        """Send email via SendGrid"""
        message = Mail(
            from_email=settings.EMAIL_FROM,
            to_emails=to,
            subject=subject,
            plain_text_content=body
        )
        try:
            response = SendGridAPIClient(settings.SENDGRID_API_KEY).send(message)
        except SendGridHTTPError as e:
            logger.error("SendGrid rejected email to %s: %s %s", to, e.status_code, e.body)
            return False
        except OSError as e:
            logger.error("SendGrid request for %s failed: %s", to, e)
            return False
        
        logger.info("Email '%s' sent to %s via SendGrid (%s)", subject, to, response.status_code)
        return True
    
    def _send_smtp_notification(self, to: str, subject: str, body: str) -> bool:
        """Send email via SMTP"""
        message = MIMEText(body)
        message["Subject"] = subject
        message["From"] = settings.EMAIL_FROM
        message["To"] = to
        
        try:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as server:
                if settings.SMTP_USE_TLS:
                    server.starttls()
                if settings.SMTP_USERNAME:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP delivery to %s failed: %s", to, e)
            return False
        
        logger.info("Email '%s' sent to %s via SMTP", subject, to)
        return True
