"""
Staging hostname allocation.

A staging host is ``<adjective>-<noun>-<n>`` where ``n`` comes from an
atomic Redis INCR on ``project_count:<adjective>-<noun>``, shared by every
running instance.
"""
import random
from typing import Optional, Protocol

import redis

from app.config import settings

ADJECTIVES = (
    "amber", "bold", "brave", "bright", "calm", "clever", "cosmic", "crisp",
    "daring", "eager", "fancy", "gentle", "golden", "happy", "humble", "jolly",
    "keen", "lively", "lucky", "mellow", "misty", "noble", "quiet", "rapid",
    "silent", "sunny", "swift", "tidy", "vivid", "witty",
)

NOUNS = (
    "badger", "breeze", "canyon", "cedar", "comet", "delta", "ember", "falcon",
    "fjord", "forest", "harbor", "heron", "island", "lagoon", "maple", "meadow",
    "nebula", "otter", "panda", "pebble", "pine", "quartz", "raven", "river",
    "sparrow", "summit", "tiger", "tundra", "valley", "willow",
)


class Counter(Protocol):
    def incr(self, name: str, amount: int = 1) -> int: ...


_redis_client: Optional[redis.Redis] = None


def get_counter() -> Counter:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


def generate_random_name(rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    return f"{rng.choice(ADJECTIVES)}-{rng.choice(NOUNS)}"


def allocate_staging_hosts(counter: Counter, rng: Optional[random.Random] = None) -> tuple:
    """Return ``(backend_host, frontend_host)`` for a new staging deployment."""
    name = generate_random_name(rng)
    count = counter.incr(f"project_count:{name}", 1)
    label = f"{name}-{count}"
    return (
        f"{label}.{settings.STAGING_BACKEND_SUFFIX}",
        f"{label}.{settings.STAGING_FRONTEND_SUFFIX}",
    )
