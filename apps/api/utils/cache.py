"""
Redis cache for doctors' weekly schedule templates.

Appointment state is never cached: slot listing and conflict checks always
read bookings from the database. A template is dropped from the cache once
the transaction that changed it has committed.
"""

import json
import logging
import os
from typing import List, Optional

import redis

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
CACHE_ENABLED = os.getenv("CACHE_ENABLED", "true").lower() == "true"

TEMPLATE_KEY = "doctor:schedule:{doctor_id}"
TEMPLATE_TTL = 600  # seconds


def connect() -> Optional[redis.Redis]:
    """Redis client, or None when caching is off or the server cannot be reached"""
    if not CACHE_ENABLED:
        return None
    try:
        redis_client = redis.from_url(REDIS_URL, decode_responses=True, socket_connect_timeout=2)
        redis_client.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis unavailable ({e}); schedule templates will be read from the database")
        return None
    logger.info("Schedule cache connected to Redis")
    return redis_client


client = connect()


class ScheduleCache:
    """Weekly template rows per doctor, stored as JSON"""

    @staticmethod
    def get_template(doctor_id: int) -> Optional[List[dict]]:
        if client is None:
            return None
        key = TEMPLATE_KEY.format(doctor_id=doctor_id)
        try:
            value = client.get(key)
        except redis.RedisError as e:
            logger.error(f"Cache get error for key {key}: {e}")
            return None
        return json.loads(value) if value else None

    @staticmethod
    def set_template(doctor_id: int, rows: List[dict]) -> bool:
        if client is None:
            return False
        key = TEMPLATE_KEY.format(doctor_id=doctor_id)
        try:
            client.setex(key, TEMPLATE_TTL, json.dumps(rows, default=str))
        except redis.RedisError as e:
            logger.error(f"Cache set error for key {key}: {e}")
            return False
        return True

    @staticmethod
    def invalidate_template(doctor_id: int) -> bool:
        if client is None:
            return False
        key = TEMPLATE_KEY.format(doctor_id=doctor_id)
        try:
            client.delete(key)
        except redis.RedisError as e:
            logger.error(f"Cache delete error for key {key}: {e}")
            return False
        logger.debug(f"Dropped cached schedule template for doctor {doctor_id}")
        return True
