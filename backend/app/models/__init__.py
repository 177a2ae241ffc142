from app.database import Base
from app.models.video import Video
from app.models.user import User, UserSession
from app.models.orphaned_asset import OrphanedAsset

__all__ = ['Base', 'Video', 'User', 'UserSession', 'OrphanedAsset']
