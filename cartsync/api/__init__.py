# cartsync/api/__init__.py
from fastapi import FastAPI
from cartsync.api.routers import carts, orders, products
from cartsync.api.routers.health import router as health_router


def create_app(lifespan=None) -> FastAPI:
    app = FastAPI(
        title="Cart Service",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.include_router(health_router)
    app.include_router(products.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    return app
