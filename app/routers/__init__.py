from app.routers import api, assessments

__all__ = [
    "api",
    "assessments",
]
