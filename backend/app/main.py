from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from core.config import settings
from core.database import import_models
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging
from app.startup import run_startup_checks

# ========== Loyalty ==========
from modules.loyalty.routes.loyalty_routes import router as loyalty_router
from modules.loyalty.routes.voucher_routes import router as voucher_router

# ========== Restaurants ==========
from modules.restaurants.routes.restaurant_routes import router as restaurant_router
from modules.reconciliation.routes.reconciliation_routes import router as reconciliation_router

# ========== Diners & Accounts ==========
from modules.invitations.routes.invitation_routes import router as invitation_router
from modules.auth.routes.account_routes import router as account_router

configure_logging()
logger = logging.getLogger(__name__)

# Every mapper must be registered before the first query
import_models()

app = FastAPI(
    title="Restaurant Loyalty API",
    description="""
    Points and visit based loyalty programme for restaurants.

    * **Accrual** - Spend and visits banked into voucher credits
    * **Vouchers** - Credits converted into vouchers, presented and redeemed at the till
    * **Reconciliation** - POS bill exports matched against redeemed vouchers
    * **Restaurants** - Settings, branches, staff, dashboard stats and activity log
    * **Invitations** - SMS invitations and diner registration
    """,
    version="0.1.0",
)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(loyalty_router)
app.include_router(voucher_router)
app.include_router(restaurant_router)
app.include_router(reconciliation_router)
app.include_router(invitation_router)
app.include_router(account_router)


@app.on_event("startup")
async def startup_event():
    run_startup_checks()


@app.get("/health")
def health_check():
    return {"status": "ok"}
