from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shared.config import settings
from shared.config.database import engine, Base
from shared.errors import register_exception_handlers
from shared.observability import setup_observability
from shared.security import limiter

# IMPORTANT: import models so they register with Base
from services.auth_service import models as auth_models  # noqa: F401
from services.customer_service import models as customer_models  # noqa: F401
from services.order_service import models as order_models  # noqa: F401
from services.product_service import models as product_models  # noqa: F401

from services.auth_service.router import router as auth_router, public_router
from services.customer_service.router import router as customer_router
from services.order_service.router import router as order_router
from services.product_service.router import router as product_router

app = FastAPI(
    title="Gin Back-office",
    version="1.0.0",
    description="Catalog, orders and customer ledger for the gin shop.",
)

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(app, settings.SERVICE_NAME)

# --- SECURITY SETUP ---
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

register_exception_handlers(app)

app.include_router(public_router)
app.include_router(auth_router)
app.include_router(product_router)
app.include_router(order_router)
app.include_router(customer_router)


@app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
