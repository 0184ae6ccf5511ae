"""Request rate limiting shared by the routers"""
import os
from slowapi import Limiter
from slowapi.util import get_remote_address

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# Applied to endpoints that write bookings
BOOKING_RATE_LIMIT = os.getenv("BOOKING_RATE_LIMIT", "30/minute")

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)
