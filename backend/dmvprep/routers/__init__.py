from dmvprep.routers import health, history, sessions

__all__ = [
    "health",
    "history",
    "sessions",
]
