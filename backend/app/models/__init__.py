from app.models.user import User
from app.models.progress import WatchProgress, MediaType
from app.models.favorite import Favorite

__all__ = [
    "User",
    "WatchProgress",
    "MediaType",
    "Favorite",
]
