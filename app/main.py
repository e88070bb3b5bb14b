import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlmodel import Session

from app.config import settings
from app.database import create_db_and_tables, engine
from app.exceptions import MarketplaceError
from app.routes import (
    admin,
    admin_coupons,
    admin_fees,
    admin_payouts,
    auth,
    authors,
    books,
    cart,
    checkout,
    files,
    health,
    orders,
    paypal,
)
from app.services.admin_setup import ensure_admin_user

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local
    if settings.ENV == "local":
        create_db_and_tables()
    with Session(engine) as session:
        ensure_admin_user(session)
    yield


app = FastAPI(title="BlueLeaf Books Marketplace API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(books.router, prefix="/books", tags=["Books"])
app.include_router(cart.router, prefix="/cart", tags=["Cart"])
app.include_router(checkout.router, prefix="/checkout", tags=["Checkout"])
app.include_router(paypal.router, prefix="/paypal", tags=["PayPal"])
app.include_router(orders.router, prefix="/orders", tags=["Orders"])
app.include_router(authors.router, prefix="/authors", tags=["Authors"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])
app.include_router(admin_fees.router, prefix="/admin/fees", tags=["Admin Platform Fees"])
app.include_router(admin_coupons.router, prefix="/admin/coupons", tags=["Admin Coupons"])
app.include_router(admin_payouts.router, prefix="/admin/payouts", tags=["Admin Payouts"])
app.include_router(files.router, prefix="/files", tags=["Files"])
app.include_router(health.router, prefix="/health", tags=["Health"])


@app.get("/")
def root():
    return {
        "auth_endpoints": [
            "/auth/register", "/auth/login", "/auth/me",
            "/auth/forgot-password", "/auth/reset-password", "/auth/logout"
        ],
        "catalog": [
            "/books", "/books/{book_id}", "/books/genres/list",
            "/books/featured/bestsellers", "/books/featured/new", "/cart/validate"
        ],
        "checkout": [
            "/checkout/apply-coupon", "/paypal/create-order",
            "/paypal/capture-order", "/paypal/client-id", "/orders"
        ],
        "authors": [
            "/authors/dashboard", "/authors/my-books",
            "/authors/payout-settings", "/authors/reports/monthly/{year}/{month}"
        ],
        "admin": [
            "/admin/fees", "/admin/coupons", "/admin/payouts", "/admin/books",
            "/admin/authors", "/admin/orders", "/admin/earnings", "/admin/reports"
        ],
    }
