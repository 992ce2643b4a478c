from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import logging
import time
from pathlib import Path
from contextlib import asynccontextmanager
from collections import defaultdict

# Load environment
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

from app.config import get_settings
from app.database import Database
from app.utils.exceptions import register_exception_handlers

# Import routers
from app.routers import auth, businesses, availability, services, staff, bookings
from app.routers import scheduling, promotions, customers, photos, products, orders
from app.routers import stripe_connect, analytics, reviews, search, notifications, geocode

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

settings = get_settings()


# ============== Simple Rate Limiter ==============

class RateLimiter:
    """Simple in-memory rate limiter for public endpoints"""

    def __init__(self, requests_per_minute: int = 60):
        self.requests_per_minute = requests_per_minute
        self.requests = defaultdict(list)

    def is_allowed(self, client_ip: str) -> bool:
        """Check if request is allowed"""
        now = time.time()
        minute_ago = now - 60

        # Clean old requests
        self.requests[client_ip] = [
            t for t in self.requests[client_ip] if t > minute_ago
        ]

        if len(self.requests[client_ip]) >= self.requests_per_minute:
            return False

        self.requests[client_ip].append(now)
        return True

    def get_retry_after(self, client_ip: str) -> int:
        """Get seconds until next request allowed"""
        if not self.requests[client_ip]:
            return 0
        oldest = min(self.requests[client_ip])
        return max(0, int(60 - (time.time() - oldest)))

    def reset(self) -> None:
        self.requests.clear()


auth_rate_limiter = RateLimiter(requests_per_minute=settings.AUTH_RATE_LIMIT_PER_MINUTE)
public_rate_limiter = RateLimiter(requests_per_minute=settings.PUBLIC_RATE_LIMIT_PER_MINUTE)

RATE_LIMITED_AUTH_PATHS = {
    f"{settings.API_PREFIX}/auth/login",
    f"{settings.API_PREFIX}/auth/signup/customer",
    f"{settings.API_PREFIX}/auth/signup/business",
    f"{settings.API_PREFIX}/auth/forgot-password",
    f"{settings.API_PREFIX}/auth/reset-password",
}

PUBLIC_PATH_PREFIXES = (
    f"{settings.API_PREFIX}/booking/",
    f"{settings.API_PREFIX}/search",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} API...")
    for warning in settings.validate_production_settings():
        logger.warning(f"Configuration: {warning}")
    await Database.connect()

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME} API...")
    await Database.disconnect()


# Create the main app
app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Beauty services marketplace: booking, payments and business tools",
    version=settings.APP_VERSION,
    lifespan=lifespan
)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


def _rate_limited(limiter: RateLimiter, client_ip: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": {"code": "RATE_LIMITED", "message": message}
        },
        headers={"Retry-After": str(limiter.get_retry_after(client_ip))}
    )


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    """Apply rate limiting to auth and public booking endpoints"""
    path = request.url.path

    client_ip = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()

    if path in RATE_LIMITED_AUTH_PATHS and request.method == "POST":
        if not auth_rate_limiter.is_allowed(client_ip):
            return _rate_limited(
                auth_rate_limiter, client_ip,
                "Too many attempts. Please wait before trying again."
            )

    if path.startswith(PUBLIC_PATH_PREFIXES):
        if not public_rate_limiter.is_allowed(client_ip):
            return _rate_limited(
                public_rate_limiter, client_ip,
                "Too many requests. Please try again later."
            )

    return await call_next(request)


api = APIRouter(prefix=settings.API_PREFIX)

# Accounts
api.include_router(auth.router, prefix="/auth", tags=["Authentication"])

# Business dashboard
api.include_router(businesses.router, prefix="/business", tags=["Business"])
api.include_router(availability.router, prefix="/business", tags=["Availability"])
api.include_router(services.router, prefix="/business/services", tags=["Services"])
api.include_router(staff.router, prefix="/business/staff", tags=["Staff"])
api.include_router(bookings.business_router, prefix="/business/bookings", tags=["Bookings"])
api.include_router(promotions.business_router, prefix="/business/promotions", tags=["Promotions"])
api.include_router(customers.router, prefix="/business/customers", tags=["Customers"])
api.include_router(photos.router, prefix="/business/photos", tags=["Photos"])
api.include_router(products.router, prefix="/business/products", tags=["Products"])
api.include_router(analytics.router, prefix="/business/analytics", tags=["Analytics"])
api.include_router(notifications.router, prefix="/business/notifications", tags=["Notifications"])
api.include_router(geocode.router, prefix="/business/geocode", tags=["Geocoding"])

# Customer flows
api.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
api.include_router(scheduling.router, prefix="/booking", tags=["Booking Page"])
api.include_router(promotions.router, prefix="/promotions", tags=["Promotions"])
api.include_router(orders.router, prefix="/orders", tags=["Orders"])
api.include_router(reviews.router, prefix="/reviews", tags=["Reviews"])
api.include_router(search.router, prefix="/search", tags=["Search"])

# Uploads and payments
api.include_router(photos.upload_router, prefix="/upload", tags=["Uploads"])
api.include_router(stripe_connect.router, prefix="/stripe", tags=["Stripe"])

app.include_router(api)


# Health check endpoints
@app.get("/", tags=["Health"])
async def root():
    return {"message": f"{settings.APP_NAME} API", "version": settings.APP_VERSION}


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "healthy"}
