"""
Report Generator
CSV exports for the business dashboard
"""

import csv
import io
from datetime import datetime
from typing import Any, Iterable

from fastapi.responses import StreamingResponse

from app.models.common import utc_now

BOOKING_EXPORT_COLUMNS = [
    ("Date", "date"),
    ("Start Time", "start_time"),
    ("End Time", "end_time"),
    ("Customer", "customer_name"),
    ("Email", "customer_email"),
    ("Service", "service_name"),
    ("Status", "status"),
    ("Payment Status", "payment_status"),
    ("Total Price", "total_price"),
    ("Platform Fee", "platform_fee"),
    ("Stripe Fee", "stripe_fee"),
    ("Business Payout", "business_payout"),
]

CUSTOMER_EXPORT_COLUMNS = [
    ("Name", "name"),
    ("Email", "email"),
    ("Phone", "phone"),
    ("Total Visits", "total_visits"),
    ("Total Spent", "total_spent"),
    ("Average Spent", "average_spent"),
    ("First Visit", "first_visit"),
    ("Last Visit", "last_visit"),
    ("Favorite Service", "favorite_service"),
    ("Tags", "tags"),
    ("VIP", "is_vip"),
]


def _cell(value: Any) -> Any:
    """Format one value for CSV output"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, float):
        return f"{value:.2f}"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return value


def generate_csv(columns: list[tuple[str, str]], rows: Iterable[dict]) -> bytes:
    """Generate CSV output with a header row"""
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow([header for header, _ in columns])
    for row in rows:
        writer.writerow([_cell(row.get(field)) for _, field in columns])

    return output.getvalue().encode("utf-8")


def bookings_csv(bookings: Iterable[dict]) -> bytes:
    """Bookings export"""
    return generate_csv(BOOKING_EXPORT_COLUMNS, bookings)


def customers_csv(profiles: Iterable[dict]) -> bytes:
    """Customer profiles export"""
    return generate_csv(CUSTOMER_EXPORT_COLUMNS, profiles)


def export_filename(prefix: str) -> str:
    """Dated download name, e.g. bookings-2024-05-01.csv"""
    return f"{prefix}-{utc_now().strftime('%Y-%m-%d')}.csv"


def csv_download(content: bytes, filename: str) -> StreamingResponse:
    """Return CSV bytes as a file download"""
    return StreamingResponse(
        io.BytesIO(content),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"'
        }
    )
