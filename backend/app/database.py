"""
MongoDB Database Connection Management
Uses Motor for async MongoDB operations
"""

from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure
import logging

from app.config import get_settings

logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager"""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect(cls) -> None:
        """Establish connection to MongoDB"""
        settings = get_settings()
        try:
            cls.client = AsyncIOMotorClient(
                settings.MONGO_URL,
                maxPoolSize=50,
                minPoolSize=10,
                serverSelectionTimeoutMS=5000,
                tz_aware=True
            )
            await cls.client.admin.command("ping")
            cls.db = cls.client[settings.DB_NAME]
            logger.info(f"Connected to MongoDB: {settings.DB_NAME}")

            await cls._create_indexes()

        except ConnectionFailure as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    @classmethod
    async def disconnect(cls) -> None:
        """Close MongoDB connection"""
        if cls.client:
            cls.client.close()
            logger.info("Disconnected from MongoDB")

    @classmethod
    async def _create_indexes(cls) -> None:
        """Create database indexes for optimal query performance"""
        if cls.db is None:
            return

        # Users
        await cls.db.users.create_index("email", unique=True)
        await cls.db.users.create_index("user_id", unique=True)
        await cls.db.users.create_index("business_id")

        # Businesses
        await cls.db.businesses.create_index("business_id", unique=True)
        await cls.db.businesses.create_index("slug", unique=True)
        await cls.db.businesses.create_index("owner_id")
        await cls.db.businesses.create_index("stripe_account_id", sparse=True)
        await cls.db.businesses.create_index([("is_active", 1), ("category", 1), ("city", 1)])

        # Weekly hours and time off
        await cls.db.availability.create_index(
            [("business_id", 1), ("day_of_week", 1)], unique=True
        )
        await cls.db.time_off.create_index("time_off_id", unique=True)
        await cls.db.time_off.create_index([("business_id", 1), ("date", 1)])

        # Services and staff
        await cls.db.services.create_index("service_id", unique=True)
        await cls.db.services.create_index([("business_id", 1), ("is_active", 1)])
        await cls.db.staff.create_index("staff_id", unique=True)
        await cls.db.staff.create_index([("business_id", 1), ("email", 1)])

        # Bookings
        await cls.db.bookings.create_index("booking_id", unique=True)
        await cls.db.bookings.create_index("customer_id")
        await cls.db.bookings.create_index("stripe_payment_intent_id", sparse=True)
        await cls.db.bookings.create_index([
            ("business_id", 1),
            ("date", 1),
            ("status", 1)
        ])

        # One reservation document per business day; bookings push intervals into it
        await cls.db.slot_reservations.create_index(
            [("business_id", 1), ("date", 1)], unique=True
        )

        # Promotions
        await cls.db.promotions.create_index("promotion_id", unique=True)
        await cls.db.promotions.create_index([("business_id", 1), ("code", 1)])
        await cls.db.promotion_usages.create_index([("promotion_id", 1), ("user_id", 1)])

        # Customers CRM
        await cls.db.customer_profiles.create_index("profile_id", unique=True)
        await cls.db.customer_profiles.create_index(
            [("business_id", 1), ("user_id", 1)], unique=True
        )
        await cls.db.communications.create_index([("profile_id", 1), ("created_at", -1)])

        # Photos, reviews
        await cls.db.photos.create_index([("business_id", 1), ("is_active", 1)])
        await cls.db.reviews.create_index("booking_id", unique=True)
        await cls.db.reviews.create_index("business_id")

        # Products and orders
        await cls.db.products.create_index("product_id", unique=True)
        await cls.db.products.create_index([("business_id", 1), ("is_active", 1)])
        await cls.db.inventory_logs.create_index("product_id")
        await cls.db.orders.create_index("order_id", unique=True)
        await cls.db.orders.create_index([("business_id", 1), ("customer_id", 1)])
        await cls.db.orders.create_index("stripe_payment_intent_id", sparse=True)

        # Notifications
        await cls.db.notification_settings.create_index("business_id", unique=True)
        await cls.db.notification_templates.create_index(
            [("business_id", 1), ("type", 1), ("channel", 1)], unique=True
        )
        await cls.db.notification_triggers.create_index(
            [("business_id", 1), ("event", 1), ("channel", 1)], unique=True
        )
        await cls.db.notification_logs.create_index([("business_id", 1), ("created_at", -1)])

        # Password resets expire on their own
        await cls.db.password_reset_tokens.create_index("token", unique=True)
        await cls.db.password_reset_tokens.create_index("expires_at", expireAfterSeconds=0)

        logger.info("Database indexes created successfully")

    @classmethod
    def get_db(cls) -> AsyncIOMotorDatabase:
        """Get database instance"""
        if cls.db is None:
            raise RuntimeError("Database not connected. Call Database.connect() first.")
        return cls.db


def get_database() -> AsyncIOMotorDatabase:
    """Dependency injection for database access"""
    return Database.get_db()
