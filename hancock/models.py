from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, LargeBinary, String
from sqlalchemy.orm import DeclarativeBase

from hancock.schemas import FreshnessPolicy
from hancock.signature import DEFAULT_WINDOW_SECONDS


class Base(DeclarativeBase):
    pass


class ApiKey(Base):
    __tablename__ = "api_keys"

    public_key = Column(String(255), primary_key=True)
    secret_key = Column(LargeBinary, nullable=False)
    # -1 skips the timestamp check, -2 disables verification
    expire_seconds = Column(Integer, nullable=False, default=DEFAULT_WINDOW_SECONDS)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    @property
    def policy(self) -> FreshnessPolicy:
        return FreshnessPolicy.from_seconds(self.expire_seconds)
