# dashfeed/version.py

SERVICE_NAME = "dashfeed-api"
SERVICE_VERSION = "0.3.0"


def cache_schema() -> dict[str, str]:
    """Key version tag per cached payload; bump the router's KEY_VERSION on shape changes."""
    from dashfeed.history import HISTORY_KEY_VERSION
    from dashfeed.routers import commute, markets, traffic, weather

    return {
        "commute": commute.KEY_VERSION,
        "traffic": traffic.KEY_VERSION,
        "weather": weather.KEY_VERSION,
        "markets": markets.KEY_VERSION,
        "history": HISTORY_KEY_VERSION,
    }


def service_version_payload() -> dict:
    """Used by /version."""
    return {
        "service": f"{SERVICE_NAME}:{SERVICE_VERSION}",
        "service_version": SERVICE_VERSION,
        "cache_schema": cache_schema(),
    }
