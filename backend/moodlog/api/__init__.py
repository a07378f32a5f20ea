from .moods import router as moods_router

__all__ = [
    "moods_router",
]
