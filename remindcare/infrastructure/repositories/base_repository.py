"""
SQLAlchemy implementation of the Base Repository.
"""

from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from remindcare.core.clock import now_local
from remindcare.domain.repositories.base import BaseRepository
from remindcare.infrastructure.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class SQLAlchemyRepository(BaseRepository[ModelType], Generic[ModelType]):
    """Generic repository implementation for SQLAlchemy models.

    Every write commits immediately: each mutation is a single-row operation.
    """

    def __init__(self, db: Session, model: Type[ModelType]):
        self.db = db
        self.model = model

    def get_by_id(self, id: int) -> Optional[ModelType]:
        return self.db.get(self.model, id)

    def list(self, skip: int = 0, limit: int = 100) -> List[ModelType]:
        return self.db.query(self.model).offset(skip).limit(limit).all()

    def create(self, obj_in: Any) -> ModelType:
        obj_data = obj_in.model_dump(exclude_unset=True) if hasattr(obj_in, "model_dump") else dict(obj_in)
        db_obj = self.model(**obj_data)
        self.db.add(db_obj)
        self._commit()
        self.db.refresh(db_obj)
        return db_obj

    def update(self, db_obj: ModelType, obj_in: Any) -> ModelType:
        update_data = obj_in.model_dump(exclude_unset=True) if hasattr(obj_in, "model_dump") else dict(obj_in)

        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
        if hasattr(db_obj, "updated_at"):
            db_obj.updated_at = now_local()

        self.db.add(db_obj)
        self._commit()
        self.db.refresh(db_obj)
        return db_obj

    def get_or_create(self, lookup: Dict[str, Any], defaults: Dict[str, Any]) -> Tuple[ModelType, bool]:
        """Insert-if-absent guarded by the table's unique constraint."""
        existing = self.db.query(self.model).filter_by(**lookup).first()
        if existing is not None:
            return existing, False

        db_obj = self.model(**lookup, **defaults)
        self.db.add(db_obj)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with another writer for the same key
            self.db.rollback()
            return self.db.query(self.model).filter_by(**lookup).one(), False
        self.db.refresh(db_obj)
        return db_obj, True

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
