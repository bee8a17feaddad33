from typing import Optional
from sqlalchemy.orm import Session
import logging

from .base import CRUDBase
from .. import models, schemas
from ..exceptions import ConflictError, NotFound

logger = logging.getLogger(__name__)


class CRUDSupplier(CRUDBase[models.Supplier, schemas.SupplierCreate, schemas.SupplierUpdate]):
    pass


class CRUDCustomer(CRUDBase[models.Customer, schemas.CustomerCreate, schemas.CustomerUpdate]):
    def get_active(self, db: Session, customer_id: int) -> models.Customer:
        """Customer that documents can still be raised against."""
        customer = self.get(db, customer_id)
        if not customer or customer.status != models.RecordStatus.ACTIVE.value:
            raise NotFound(f"Customer {customer_id} not found", customer_id=customer_id)
        return customer


class CRUDParticular(CRUDBase[models.Particular, schemas.ParticularCreate, schemas.ParticularUpdate]):
    pass


class CRUDBagType(CRUDBase[models.BagType, schemas.BagTypeCreate, schemas.BagTypeUpdate]):
    def get_by_name(self, db: Session, bag_type: str) -> Optional[models.BagType]:
        return db.query(models.BagType).filter(models.BagType.bag_type == bag_type).first()

    def create(self, db: Session, *, obj_in: schemas.BagTypeCreate) -> models.BagType:
        if self.get_by_name(db, obj_in.bag_type):
            raise ConflictError(f"Bag type '{obj_in.bag_type}' already exists", bag_type=obj_in.bag_type)
        db_obj = super().create(db, obj_in=obj_in)
        logger.info(f"Created bag type {db_obj.bag_type} at {db_obj.bag_price}")
        return db_obj


class CRUDCuttingType(CRUDBase[models.CuttingType, schemas.CuttingTypeCreate, schemas.CuttingTypeUpdate]):
    pass


class CRUDRollType(CRUDBase[models.RollType, schemas.RollTypeCreate, schemas.RollTypeUpdate]):
    pass


class CRUDPrintSize(CRUDBase[models.PrintSize, schemas.PrintSizeCreate, schemas.PrintSizeUpdate]):
    pass


suppliers = CRUDSupplier(models.Supplier)
customers = CRUDCustomer(models.Customer)
particulars = CRUDParticular(models.Particular)
bag_types = CRUDBagType(models.BagType)
cutting_types = CRUDCuttingType(models.CuttingType)
roll_types = CRUDRollType(models.RollType)
print_sizes = CRUDPrintSize(models.PrintSize)
