"""Ingestion configuration with sensible defaults for the GeoGuessr APIs."""

from dataclasses import dataclass, field

GAME_SERVER_URL = "https://game-server.geoguessr.com"
API_URL = "https://www.geoguessr.com"

# Dependent territories that commonly overlap their parent country's
# polygons.  When one of these is among the candidates it wins.
PRIORITY_COUNTRY_CODES = frozenset(
    {"CW", "DO", "PR", "VI", "GU", "MP", "HK", "CX", "ST", "SJ"}
)


@dataclass
class IngestConfig:
    """Configuration for the duel ingestion pipeline.

    All timing values are in seconds.
    """

    # Upstream endpoints
    game_server_url: str = GAME_SERVER_URL
    api_url: str = API_URL

    # Per-request timeout for every outbound call (connect + read)
    request_timeout: float = 15.0

    # Upper bound on simultaneous outbound requests
    max_concurrent_requests: int = 16

    # Matches fetched concurrently per batch chunk
    batch_chunk_size: int = 60

    # Enrichment throttle: skip re-fetching a player/team seen this recently
    cache_ttl: float = 90.0

    # Refresh the guest cookie when it expires within this window
    cookie_refresh_margin: float = 15.0

    # Assumed cookie lifetime when the login response sets no expiry
    cookie_fallback_lifetime: float = 50_000.0

    # Nickname used for the guest login
    guest_nick: str = "geo_stats"

    # tenacity stop_after_attempt for the guest login
    max_retries: int = 3

    # Persistent data storage
    data_dir: str = "data"
    db_path: str = "data/geostats.db"

    # Boundary datasets (GeoJSON, optionally gzip-compressed)
    world_boundaries_path: str = "data/boundaries/world.json.gz"
    subdivision_boundaries_path: str = "data/boundaries/states.json.gz"

    # Archive raw match payloads to disk
    save_payloads: bool = True

    priority_country_codes: frozenset[str] = field(
        default_factory=lambda: PRIORITY_COUNTRY_CODES
    )
