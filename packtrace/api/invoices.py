from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
import logging

from .base import InternalError, LedgerError, Pagination, atomic, get_current_actor, get_db
from .. import models, schemas
from ..services import sales_ledger

router = APIRouter()
logger = logging.getLogger(__name__)

# ============================================================================
# INVOICE ENDPOINTS
# ============================================================================

@router.get("/sales/invoices", response_model=List[schemas.Invoice], tags=["Invoices"])
def get_invoices(page: Pagination = Depends(), db: Session = Depends(get_db)):
    try:
        return sales_ledger.list_invoices(db, skip=page.skip, limit=page.limit)
    except Exception as e:
        logger.error(f"Error getting invoices: {e}")
        raise InternalError("Failed to get invoices")

@router.post("/sales/invoices", response_model=schemas.Invoice, tags=["Invoices"])
def create_invoice(
    invoice: schemas.InvoiceCreate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    """Bill a delivery order by bag type"""
    try:
        with atomic(db):
            db_invoice = sales_ledger.create_invoice(
                db,
                customer_id=invoice.customer_id,
                do_id=invoice.do_id,
                items=invoice.items,
                actor_id=actor.id,
            )
        return sales_ledger.get_invoice(db, db_invoice.id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error creating invoice: {e}")
        raise InternalError("Failed to create invoice")

@router.get("/sales/invoices/{invoice_id}", response_model=schemas.Invoice, tags=["Invoices"])
def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    try:
        return sales_ledger.get_invoice(db, invoice_id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error getting invoice {invoice_id}: {e}")
        raise InternalError("Failed to get invoice")

@router.put("/sales/invoices/{invoice_id}", response_model=schemas.Invoice, tags=["Invoices"])
def update_invoice(
    invoice_id: int,
    invoice_update: schemas.InvoiceUpdate,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            sales_ledger.update_invoice(
                db,
                invoice_id=invoice_id,
                items=invoice_update.items,
                actor_id=actor.id,
                customer_id=invoice_update.customer_id,
                do_id=invoice_update.do_id,
            )
        return sales_ledger.get_invoice(db, invoice_id)
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error updating invoice {invoice_id}: {e}")
        raise InternalError("Failed to update invoice")

@router.delete("/sales/invoices/{invoice_id}", tags=["Invoices"])
def delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    actor: models.UserMaster = Depends(get_current_actor)
):
    try:
        with atomic(db):
            result = sales_ledger.delete_invoice(db, invoice_id=invoice_id, actor_id=actor.id)
        return {"message": "Invoice deleted successfully", **result}
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error deleting invoice {invoice_id}: {e}")
        raise InternalError("Failed to delete invoice")
