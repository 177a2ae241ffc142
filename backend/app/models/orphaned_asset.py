from sqlalchemy import Column, DateTime, Integer, String, Text
from app.database import Base
from app.models.video import utc_now


class OrphanedAsset(Base):
    """
    Remote asset whose deletion failed.
    Rows are drained by scripts/reconcile_assets.py.
    """
    __tablename__ = 'orphaned_assets'

    id = Column(Integer, primary_key=True)
    public_id = Column(String(512), nullable=False, index=True)
    resource_type = Column(String(16), nullable=False)  # image, video
    url = Column(String(1024), nullable=True)
    reason = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    def __repr__(self):
        return f"<OrphanedAsset(public_id='{self.public_id}', resource_type='{self.resource_type}')>"
