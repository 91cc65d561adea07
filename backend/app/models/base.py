"""Base model class with common fields and methods."""

from datetime import date, datetime
from typing import Any, Dict, Optional, Set

from sqlalchemy import Column, DateTime, func

from app.core.database import Base


class BaseModel(Base):
    """Base model with common fields for all database models."""

    __abstract__ = True
    __allow_unmapped__ = True

    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def to_dict(self, exclude: Optional[Set[Any]] = None) -> Dict[str, Any]:
        """
        Convert model instance to dictionary.

        Args:
            exclude: Set of column names to exclude from output

        Returns:
            Dictionary representation of the model
        """
        exclude = exclude or set()
        data = {}

        for column in self.__table__.columns:
            if column.name not in exclude:
                value = getattr(self, column.name)
                if isinstance(value, (datetime, date)):
                    value = value.isoformat()
                data[column.name] = value

        return data

    def update_from_dict(
        self, data: Dict[str, Any], exclude: Optional[Set[Any]] = None
    ) -> None:
        """
        Update model instance from dictionary.

        Args:
            data: Dictionary containing update data
            exclude: Set of column names to exclude from update
        """
        exclude = exclude or {"id", "owner_id", "created_at", "updated_at"}

        for key, value in data.items():
            if hasattr(self, key) and key not in exclude:
                setattr(self, key, value)

    def __repr__(self) -> str:
        """String representation of the model."""
        class_name = self.__class__.__name__
        attrs = []
        for column in self.__table__.columns:
            if column.primary_key:
                attrs.append(f"{column.name}={getattr(self, column.name)!r}")
        return f"<{class_name}({', '.join(attrs)})>"
