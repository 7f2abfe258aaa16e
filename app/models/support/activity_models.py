from sqlalchemy import Column, Integer, String, ForeignKey, Index
from app.core.db import Base
from app.models.base.mixins import TimestampMixin


class UserActivity(Base, TimestampMixin):
    """
    Append-only audit trail for tickets, products, pricing and migrations.
    System jobs (scheduler sweeps, CLI migrations) write user_id NULL.
    """

    __tablename__ = "user_activity"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = Column(String(150), nullable=False, index=True)
    activity_code = Column(String(60), nullable=False, index=True)
    message = Column(String, nullable=False)

    __table_args__ = (Index("ix_user_activity_code_created", "activity_code", "created_at"),)

    def __repr__(self):
        return f"<UserActivity id={self.id} code={self.activity_code} user={self.username_snapshot}>"
