from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from .base import InternalError, LedgerError, Pagination, atomic, get_current_actor, get_db
from .. import models, schemas
from ..crud import masters
from ..exceptions import NotFound

router = APIRouter()
logger = logging.getLogger(__name__)

# ============================================================================
# MASTER DATA ENDPOINTS
# Suppliers, customers, particulars, bag types and cutting types share the
# same list / create / update / deactivate shape.
# ============================================================================

def _register_master(path: str, label: str, crud, create_schema, update_schema, response_schema):
    tag = label.title() + "s"

    @router.get(f"/{path}", response_model=List[response_schema], tags=[tag], name=f"list_{path}")
    def list_items(
        status: Optional[schemas.RecordStatus] = schemas.RecordStatus.ACTIVE,
        page: Pagination = Depends(),
        db: Session = Depends(get_db)
    ):
        try:
            return crud.get_multi(db, skip=page.skip, limit=page.limit, status=status.value if status else None)
        except Exception as e:
            logger.error(f"Error getting {label}s: {e}")
            raise InternalError(f"Failed to get {label}s")

    @router.post(f"/{path}", response_model=response_schema, tags=[tag], name=f"create_{path}")
    def create_item(
        item: create_schema,
        db: Session = Depends(get_db),
        actor: models.UserMaster = Depends(get_current_actor)
    ):
        try:
            with atomic(db):
                db_item = crud.create(db, obj_in=item)
            db.refresh(db_item)
            logger.info(f"Created {label} {db_item.id} by user {actor.id}")
            return db_item
        except LedgerError:
            raise
        except Exception as e:
            logger.error(f"Error creating {label}: {e}")
            raise InternalError(f"Failed to create {label}")

    @router.put(f"/{path}/{{item_id}}", response_model=response_schema, tags=[tag], name=f"update_{path}")
    def update_item(
        item_id: int,
        item_update: update_schema,
        db: Session = Depends(get_db),
        actor: models.UserMaster = Depends(get_current_actor)
    ):
        try:
            with atomic(db):
                db_item = crud.get(db, item_id)
                if not db_item:
                    raise NotFound(f"{label.capitalize()} {item_id} not found")
                db_item = crud.update(db, db_obj=db_item, obj_in=item_update)
            db.refresh(db_item)
            logger.info(f"Updated {label} {item_id} by user {actor.id}")
            return db_item
        except LedgerError:
            raise
        except Exception as e:
            logger.error(f"Error updating {label}: {e}")
            raise InternalError(f"Failed to update {label}")

    @router.delete(f"/{path}/{{item_id}}", tags=[tag], name=f"delete_{path}")
    def delete_item(
        item_id: int,
        db: Session = Depends(get_db),
        actor: models.UserMaster = Depends(get_current_actor)
    ):
        """Soft delete (deactivate)"""
        try:
            with atomic(db):
                if not crud.deactivate(db, id=item_id):
                    raise NotFound(f"{label.capitalize()} {item_id} not found")
            logger.info(f"Deactivated {label} {item_id} by user {actor.id}")
            return {"message": f"{label.capitalize()} deleted successfully"}
        except LedgerError:
            raise
        except Exception as e:
            logger.error(f"Error deleting {label}: {e}")
            raise InternalError(f"Failed to delete {label}")


_register_master("suppliers", "supplier", masters.suppliers,
                 schemas.SupplierCreate, schemas.SupplierUpdate, schemas.Supplier)
_register_master("customers", "customer", masters.customers,
                 schemas.CustomerCreate, schemas.CustomerUpdate, schemas.Customer)
_register_master("particulars", "particular", masters.particulars,
                 schemas.ParticularCreate, schemas.ParticularUpdate, schemas.Particular)
_register_master("bag-types", "bag type", masters.bag_types,
                 schemas.BagTypeCreate, schemas.BagTypeUpdate, schemas.BagType)
_register_master("cutting-types", "cutting type", masters.cutting_types,
                 schemas.CuttingTypeCreate, schemas.CuttingTypeUpdate, schemas.CuttingType)
_register_master("roll-types", "roll type", masters.roll_types,
                 schemas.RollTypeCreate, schemas.RollTypeUpdate, schemas.RollType)
_register_master("print-sizes", "print size", masters.print_sizes,
                 schemas.PrintSizeCreate, schemas.PrintSizeUpdate, schemas.PrintSize)
