"""
Email Templates
HTML email templates for transactional emails
"""

from html import escape
from typing import Optional


def render_base_template(title: str, content: str, footer_text: str = "") -> str:
    """Render base HTML email template"""
    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            line-height: 1.6;
            color: #2d2a32;
            margin: 0;
            padding: 0;
            background-color: #faf7f5;
        }}
        .container {{
            max-width: 600px;
            margin: 0 auto;
            padding: 20px;
        }}
        .card {{
            background-color: #ffffff;
            border-radius: 12px;
            box-shadow: 0 2px 6px rgba(0, 0, 0, 0.08);
            overflow: hidden;
        }}
        .header {{
            padding: 24px;
            text-align: center;
            color: #ffffff;
        }}
        .header h1 {{
            margin: 0;
            font-size: 24px;
            font-weight: 600;
        }}
        .body {{
            padding: 24px;
        }}
        .info-box {{
            background-color: #fbf4f6;
            border-radius: 8px;
            padding: 16px;
            margin: 16px 0;
        }}
        .info-row {{
            display: flex;
            justify-content: space-between;
            padding: 8px 0;
            border-bottom: 1px solid #f0e4e8;
        }}
        .info-row:last-child {{
            border-bottom: none;
        }}
        .info-label {{
            font-weight: 500;
            color: #7a6f7d;
        }}
        .info-value {{
            font-weight: 600;
            color: #2d2a32;
        }}
        .btn {{
            display: inline-block;
            padding: 12px 24px;
            font-size: 16px;
            font-weight: 600;
            text-decoration: none;
            border-radius: 6px;
            background-color: #c2185b;
            color: #ffffff !important;
        }}
        .footer {{
            text-align: center;
            padding: 24px;
            color: #7a6f7d;
            font-size: 14px;
        }}
        .success-header {{ background-color: #c2185b; }}
        .info-header {{ background-color: #6a1b9a; }}
        .warning-header {{ background-color: #ef6c00; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="card">
            {content}
        </div>
        <div class="footer">
            {footer_text}
            <p style="margin-top: 8px; font-size: 12px; color: #b3a9b6;">
                This email was sent via GlowBook
            </p>
        </div>
    </div>
</body>
</html>
"""


def _info_rows(rows: list[tuple[str, str]]) -> str:
    return "".join(
        f"""
                <div class="info-row">
                    <span class="info-label">{label}</span>
                    <span class="info-value">{value}</span>
                </div>"""
        for label, value in rows
    )


def render_booking_confirmation(
    customer_name: str,
    business_name: str,
    service_name: str,
    date: str,
    start_time: str,
    confirmation_number: str,
    total_price: float,
    address: str = "",
    business_phone: str = "",
    paid: bool = False
) -> str:
    """Render booking confirmation email"""
    rows = [
        ("Confirmation #", confirmation_number),
        ("Service", service_name),
        ("Date", date),
        ("Time", start_time),
    ]
    if address:
        rows.append(("Address", address))
    rows.append(("Total", f"${total_price:.2f}" + (" (paid)" if paid else " (pay at visit)")))

    content = f"""
        <div class="header success-header">
            <h1>Booking Confirmed!</h1>
        </div>
        <div class="body">
            <p>Hi {customer_name},</p>
            <p>Your appointment at {business_name} is confirmed. Here are the details:</p>

            <div class="info-box">{_info_rows(rows)}
            </div>

            <p><strong>Need to make changes?</strong><br>
            You can cancel from your bookings page up to 24 hours before your appointment,
            or contact us at {business_phone}.</p>

            <p>See you soon!</p>
        </div>
    """
    return render_base_template(
        "Booking Confirmed",
        content,
        f"Questions? Contact {business_name} at {business_phone}"
    )


def render_booking_cancelled(
    customer_name: str,
    business_name: str,
    service_name: str,
    date: str,
    start_time: str,
    reason: Optional[str] = None,
    refund_note: Optional[str] = None
) -> str:
    """Render booking cancellation email"""
    reason_html = f"<p><strong>Reason:</strong> {escape(reason)}</p>" if reason else ""
    refund_html = f"<p>{refund_note}</p>" if refund_note else ""

    content = f"""
        <div class="header warning-header">
            <h1>Booking Cancelled</h1>
        </div>
        <div class="body">
            <p>Hi {customer_name},</p>
            <p>Your appointment at {business_name} has been cancelled.</p>

            <div class="info-box">{_info_rows([
                ("Service", service_name),
                ("Date", date),
                ("Time", start_time),
            ])}
            </div>

            {reason_html}
            {refund_html}

            <p>We hope to see you again soon.</p>
        </div>
    """
    return render_base_template(
        "Booking Cancelled",
        content,
        f"From {business_name}"
    )


def render_refund_issued(
    customer_name: str,
    business_name: str,
    service_name: str,
    date: str,
    amount: float
) -> str:
    """Render refund confirmation email"""
    content = f"""
        <div class="header info-header">
            <h1>Refund Issued</h1>
        </div>
        <div class="body">
            <p>Hi {customer_name},</p>
            <p>Your payment for {service_name} on {date} at {business_name} has been refunded.</p>

            <div class="info-box">{_info_rows([
                ("Refund amount", f"${amount:.2f}"),
                ("Service", service_name),
                ("Date", date),
            ])}
            </div>

            <p style="color: #7a6f7d; font-size: 14px;">
                Refunds usually appear on your statement within 5 to 10 business days.
            </p>
        </div>
    """
    return render_base_template(
        "Refund Issued",
        content,
        f"From {business_name}"
    )


def render_order_confirmation(
    customer_name: str,
    business_name: str,
    order_number: str,
    items: list[dict],
    total: float,
    delivery_method: str
) -> str:
    """Render product order confirmation email"""
    rows = [(f"{item['name']} x {item['quantity']}", f"${item['total']:.2f}") for item in items]
    rows.append(("Total", f"${total:.2f}"))

    content = f"""
        <div class="header success-header">
            <h1>Order Received</h1>
        </div>
        <div class="body">
            <p>Hi {customer_name},</p>
            <p>Thanks for your order #{order_number} from {business_name}.</p>

            <div class="info-box">{_info_rows(rows)}
            </div>

            <p>Fulfilment: <strong>{delivery_method.title()}</strong></p>
        </div>
    """
    return render_base_template(
        "Order Received",
        content,
        f"Order from {business_name}"
    )


def render_customer_message(
    customer_name: str,
    business_name: str,
    message: str
) -> str:
    """Render a free-form message from a business to a customer"""
    body = escape(message).replace("\n", "<br>")
    content = f"""
        <div class="header info-header">
            <h1>{business_name}</h1>
        </div>
        <div class="body">
            <p>Hi {customer_name},</p>
            <p>{body}</p>
        </div>
    """
    return render_base_template(
        f"Message from {business_name}",
        content,
        f"Sent by {business_name}"
    )


def render_password_reset(
    user_name: str,
    reset_link: str,
    expires_minutes: int = 60
) -> str:
    """Render password reset email"""
    content = f"""
        <div class="header info-header">
            <h1>Reset Your Password</h1>
        </div>
        <div class="body">
            <p>Hi {user_name},</p>
            <p>We received a request to reset your password. Click the button below to create a new password:</p>

            <div style="text-align: center; margin: 32px 0;">
                <a href="{reset_link}" class="btn">Reset Password</a>
            </div>

            <p style="color: #7a6f7d; font-size: 14px;">
                This link will expire in {expires_minutes} minutes. If you didn't request this, you can safely ignore this email.
            </p>

            <p style="color: #7a6f7d; font-size: 14px; margin-top: 24px;">
                If the button doesn't work, copy and paste this link into your browser:<br>
                <a href="{reset_link}" style="word-break: break-all;">{reset_link}</a>
            </p>
        </div>
    """
    return render_base_template(
        "Reset Your Password",
        content,
        "If you didn't request this, please ignore this email."
    )


def render_notification(business_name: str, subject: str, content: str) -> str:
    """Render a business notification template filled with its values"""
    body = escape(content).replace("\n", "<br>")
    inner = f"""
        <div class="header info-header">
            <h1>{escape(subject)}</h1>
        </div>
        <div class="body">
            <p>{body}</p>
        </div>
    """
    return render_base_template(subject, inner, f"Sent by {business_name}")
