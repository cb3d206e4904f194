"""Class model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from classroll.core.database import Base
from classroll.models.base import IDMixin, TimestampMixin


class SchoolClass(Base, IDMixin, TimestampMixin):
    """A named group of students sharing attendance records."""

    __tablename__ = "classes"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<SchoolClass(id={self.id}, name={self.name})>"
