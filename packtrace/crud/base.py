from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import Base
from ..models import RecordStatus

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


def column_values(data: Dict[str, Any]) -> Dict[str, Any]:
    """Schema enums are stored by value."""
    return {key: value.value if isinstance(value, Enum) else value for key, value in data.items()}


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    def __init__(self, model: Type[ModelType]):
        """
        CRUD object with default methods to Create, Read, Update, Delete (CRUD).
        Writes are flushed, the caller commits them through `database.atomic`.

        **Parameters**

        * `model`: A SQLAlchemy model class
        """
        self.model = model

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return db.get(self.model, id)

    def get_multi(
        self, db: Session, *, skip: int = 0, limit: int = 100, status: Optional[str] = RecordStatus.ACTIVE.value
    ) -> List[ModelType]:
        query = db.query(self.model)
        if status is not None and hasattr(self.model, "status"):
            query = query.filter(self.model.status == status)
        return query.order_by(self.model.id.desc()).offset(skip).limit(limit).all()

    def create(self, db: Session, *, obj_in: CreateSchemaType) -> ModelType:
        db_obj = self.model(**column_values(obj_in.model_dump()))
        db.add(db_obj)
        db.flush()
        db.refresh(db_obj)
        return db_obj

    def update(
        self, db: Session, *, db_obj: ModelType, obj_in: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)
        for field, value in column_values(update_data).items():
            setattr(db_obj, field, value)
        db.flush()
        db.refresh(db_obj)
        return db_obj

    def deactivate(self, db: Session, *, id: Any) -> Optional[ModelType]:
        """Soft delete: the row stays for history, status goes inactive."""
        db_obj = self.get(db, id)
        if db_obj:
            db_obj.status = RecordStatus.INACTIVE.value
            db.flush()
        return db_obj
