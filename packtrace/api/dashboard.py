from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from datetime import datetime
import logging

from .base import InternalError, get_db
from .. import models

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/dashboard/summary", tags=["Dashboard"])
def get_dashboard_summary(db: Session = Depends(get_db)):
    """
    Headline counts for the landing page
    """
    try:
        active = models.RecordStatus.ACTIVE.value

        job_cards = db.query(models.JobCard).filter(models.JobCard.status == active).count()
        slitting_records = db.query(models.SlittingRecord).count()
        print_records = db.query(models.PrintRecord).count()
        cutting_records = db.query(models.CuttingRecord).count()
        customers = db.query(models.Customer).filter(models.Customer.status == active).count()

        available_units = db.query(models.StockUnit).filter(
            models.StockUnit.status == models.StockStatus.AVAILABLE.value
        ).count()
        unsold_items = db.query(models.CompleteItem).filter(models.CompleteItem.is_active.is_(True)).count()
        open_orders = db.query(models.SalesInfo).filter(models.SalesInfo.is_active.is_(True)).count()

        return {
            "status": "success",
            "summary": {
                "job_cards": job_cards,
                "customers": customers,
                "production": {
                    "slitting_records": slitting_records,
                    "print_records": print_records,
                    "cutting_records": cutting_records,
                },
                "stock": {
                    "available_units": available_units,
                    "unsold_items": unsold_items,
                },
                "delivery_orders": open_orders,
            },
            "timestamp": datetime.utcnow().isoformat()
        }

    except Exception as e:
        logger.error(f"Error getting dashboard summary: {e}")
        raise InternalError("Failed to get dashboard summary")
