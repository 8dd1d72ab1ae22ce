from app.routers import achievements, auth, certificates, courses, health, progress, submissions

__all__ = [
    "achievements",
    "auth",
    "certificates",
    "courses",
    "health",
    "progress",
    "submissions",
]
