from fastapi import APIRouter
from .api import auth, dashboard, masters, material_management, stock, job_cards, slitting, printing, cutting, bundles, sales, returns, invoices

# Create main API router
api_router = APIRouter()

# Users and master data
api_router.include_router(auth.router, prefix="/api")
api_router.include_router(masters.router, prefix="/api")

# Raw material and stock
api_router.include_router(material_management.router, prefix="/api")
api_router.include_router(stock.router, prefix="/api")

# Production
api_router.include_router(job_cards.router, prefix="/api")
api_router.include_router(slitting.router, prefix="/api")
api_router.include_router(printing.router, prefix="/api")
api_router.include_router(cutting.router, prefix="/api")
api_router.include_router(bundles.router, prefix="/api")

# Sales
api_router.include_router(sales.router, prefix="/api")
api_router.include_router(returns.router, prefix="/api")
api_router.include_router(invoices.router, prefix="/api")

# Landing page
api_router.include_router(dashboard.router, prefix="/api")
