"""
Email Service
SendGrid integration for transactional email
"""

import logging
from typing import Optional
import httpx

from app.config import get_settings
from app.services.email_templates import (
    render_booking_confirmation,
    render_booking_cancelled,
    render_refund_issued,
    render_order_confirmation,
    render_customer_message,
    render_notification,
    render_password_reset,
)

logger = logging.getLogger(__name__)
settings = get_settings()


class EmailResult:
    """Result of email send operation"""
    def __init__(
        self,
        success: bool,
        message_id: Optional[str] = None,
        error: Optional[str] = None
    ):
        self.success = success
        self.message_id = message_id
        self.error = error


class EmailService:
    """SendGrid email service"""

    SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"

    def __init__(self):
        self.api_key = settings.SENDGRID_API_KEY
        self.from_email = settings.SENDGRID_FROM_EMAIL
        self.from_name = settings.SENDGRID_FROM_NAME
        self._configured = bool(self.api_key)

    @property
    def is_configured(self) -> bool:
        """Check if SendGrid is configured"""
        return self._configured

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        to_name: Optional[str] = None,
        reply_to: Optional[str] = None
    ) -> EmailResult:
        """
        Send email via SendGrid

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML body content
            text_content: Optional plain text content
            to_name: Optional recipient name
            reply_to: Optional reply-to address

        Returns:
            EmailResult with success status
        """
        if not self.is_configured:
            logger.warning("SendGrid not configured, skipping email")
            return EmailResult(
                success=False,
                error="Email service not configured"
            )

        payload = {
            "personalizations": [{
                "to": [{"email": to_email}]
            }],
            "from": {
                "email": self.from_email,
                "name": self.from_name
            },
            "subject": subject,
            "content": []
        }

        if to_name:
            payload["personalizations"][0]["to"][0]["name"] = to_name

        if text_content:
            payload["content"].append({
                "type": "text/plain",
                "value": text_content
            })

        payload["content"].append({
            "type": "text/html",
            "value": html_content
        })

        if reply_to:
            payload["reply_to"] = {"email": reply_to}

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.SENDGRID_URL,
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json"
                    },
                    timeout=30.0
                )

                if response.status_code in (200, 201, 202):
                    message_id = response.headers.get("X-Message-Id")
                    logger.info(f"Email sent successfully: {message_id}")
                    return EmailResult(success=True, message_id=message_id)
                else:
                    try:
                        error_data = response.json()
                        errors = error_data.get("errors", [])
                        error_msg = errors[0].get("message") if errors else "Unknown error"
                    except ValueError:
                        error_msg = f"HTTP {response.status_code}"
                    logger.error(f"SendGrid error: {error_msg}")
                    return EmailResult(success=False, error=error_msg)

        except httpx.TimeoutException:
            logger.error("SendGrid request timeout")
            return EmailResult(success=False, error="Request timeout")
        except httpx.HTTPError as e:
            logger.error(f"Email send error: {str(e)}")
            return EmailResult(success=False, error=str(e))

    async def send_booking_confirmation(
        self,
        booking: dict,
        business: dict,
        paid: bool = False
    ) -> EmailResult:
        """Send booking confirmation email"""
        if not booking.get("customer_email"):
            return EmailResult(success=False, error="No customer email")

        address = ", ".join(
            part for part in (business.get("address"), business.get("city"), business.get("state"))
            if part
        )
        html_content = render_booking_confirmation(
            customer_name=booking["customer_name"],
            business_name=business["business_name"],
            service_name=booking["service_name"],
            date=booking["date"],
            start_time=booking["start_time"],
            confirmation_number=booking["booking_id"][-8:].upper(),
            total_price=booking["total_price"],
            address=address,
            business_phone=business.get("phone", ""),
            paid=paid
        )
        return await self.send_email(
            to_email=booking["customer_email"],
            subject=f"Confirmed: {booking['service_name']} on {booking['date']} at {booking['start_time']}",
            html_content=html_content,
            to_name=booking["customer_name"]
        )

    async def send_booking_cancelled(
        self,
        booking: dict,
        business: dict,
        reason: Optional[str] = None,
        refund_note: Optional[str] = None
    ) -> EmailResult:
        """Send booking cancellation email"""
        if not booking.get("customer_email"):
            return EmailResult(success=False, error="No customer email")

        html_content = render_booking_cancelled(
            customer_name=booking["customer_name"],
            business_name=business["business_name"],
            service_name=booking["service_name"],
            date=booking["date"],
            start_time=booking["start_time"],
            reason=reason,
            refund_note=refund_note
        )
        return await self.send_email(
            to_email=booking["customer_email"],
            subject=f"Cancelled: {booking['service_name']} on {booking['date']}",
            html_content=html_content,
            to_name=booking["customer_name"]
        )

    async def send_refund_issued(self, booking: dict, business: dict) -> EmailResult:
        """Send refund confirmation email"""
        if not booking.get("customer_email"):
            return EmailResult(success=False, error="No customer email")

        html_content = render_refund_issued(
            customer_name=booking["customer_name"],
            business_name=business["business_name"],
            service_name=booking["service_name"],
            date=booking["date"],
            amount=booking["total_price"]
        )
        return await self.send_email(
            to_email=booking["customer_email"],
            subject=f"Refund issued for your {booking['service_name']} booking",
            html_content=html_content,
            to_name=booking["customer_name"]
        )

    async def send_order_confirmation(self, order: dict, business: dict) -> EmailResult:
        """Send product order confirmation email"""
        if not order.get("customer_email"):
            return EmailResult(success=False, error="No customer email")

        html_content = render_order_confirmation(
            customer_name=order["customer_name"],
            business_name=business["business_name"],
            order_number=order["order_id"][-8:].upper(),
            items=order["items"],
            total=order["total"],
            delivery_method=order["delivery_method"]
        )
        return await self.send_email(
            to_email=order["customer_email"],
            subject=f"Your order from {business['business_name']}",
            html_content=html_content,
            to_name=order["customer_name"]
        )

    async def send_customer_message(
        self,
        to_email: str,
        customer_name: str,
        business_name: str,
        subject: str,
        content: str,
        reply_to: Optional[str] = None
    ) -> EmailResult:
        """Send a business-written message to a customer"""
        html_content = render_customer_message(
            customer_name=customer_name,
            business_name=business_name,
            message=content
        )
        return await self.send_email(
            to_email=to_email,
            subject=subject,
            html_content=html_content,
            text_content=content,
            to_name=customer_name,
            reply_to=reply_to
        )

    async def send_notification(
        self,
        to_email: str,
        subject: str,
        content: str,
        business_name: str,
        reply_to: Optional[str] = None
    ) -> EmailResult:
        """Send a filled notification template"""
        return await self.send_email(
            to_email=to_email,
            subject=subject,
            html_content=render_notification(business_name, subject, content),
            text_content=content,
            reply_to=reply_to
        )

    async def send_password_reset(
        self,
        to_email: str,
        user_name: str,
        reset_link: str,
        expires_minutes: int
    ) -> EmailResult:
        """Send password reset link"""
        html_content = render_password_reset(
            user_name=user_name,
            reset_link=reset_link,
            expires_minutes=expires_minutes
        )
        return await self.send_email(
            to_email=to_email,
            subject="Reset Your Password",
            html_content=html_content,
            to_name=user_name
        )


# Singleton instance
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get email service singleton"""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
