from flightdeck.routers import admin, health, stats, tests

__all__ = [
    "admin",
    "health",
    "stats",
    "tests",
]
