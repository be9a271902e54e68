import redis.asyncio as redis

from core.config import settings

EMERGENCY_REQUESTS_KEY = "emergency_requests"

REQUEST_CHANNEL = "emergency_requests:{request_id}"
RESPONDER_LOCATION_CHANNEL = "responder_location:{request_id}"
HOSPITAL_BEDS_CHANNEL = "hospital_beds:{hospital_id}"
FEEDBACK_CHANNEL = "feedback:{identity}"

conn = redis.Redis.from_url(
    settings.REDIS_URL,
    decode_responses=True  # returns strings instead of bytes
)
