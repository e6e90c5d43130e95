from datetime import timedelta

EVENT_KEY_PREFIX = "event:"
EVENT_KEY = EVENT_KEY_PREFIX + "{event_id}"

# Used when an event has already ended by the time it is cached.
DEFAULT_EVENT_CACHE_TTL = timedelta(hours=1)
