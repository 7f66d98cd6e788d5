"""Per-account named settings (e.g. the AI Studio flow used for scoring)."""
from sqlalchemy import String, Text, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from qa_batch.models.base import Base, TimestampMixin


class AccountSetting(Base, TimestampMixin):
    __tablename__ = "account_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("account_id", "name", name="uq_account_setting_name"),
    )
