from contextlib import asynccontextmanager

import structlog
from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .exceptions import (
    OrderNotFoundError,
    OrderProcessingError,
    OrderValidationError,
    ProductNotFoundError,
)
from .orchestrator import OrderOrchestrator
from .runtime import Runtime, build_runtime
from .schemas import (
    OrderDetail,
    OrderResponse,
    OrderStatistics,
    PlaceOrderRequest,
    ProductCreate,
    ProductOut,
    StockUpdate,
)
from .utils.logging import configure_logging

logger = structlog.get_logger(__name__)


# --- Dependencies ---
def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_orchestrator(runtime: Runtime = Depends(get_runtime)) -> OrderOrchestrator:
    return runtime.orchestrator


# --- Order Endpoints ---
orders_router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


@orders_router.post("/place-order", status_code=status.HTTP_201_CREATED, response_model_exclude_none=True)
def place_order(req: PlaceOrderRequest, orchestrator: OrderOrchestrator = Depends(get_orchestrator)) -> OrderResponse:
    """Accepts an order and returns immediately; fulfillment continues in the background."""
    return orchestrator.process_complete_order(req)


# Declared before /{order_id} so "statistics" is not parsed as an id.
@orders_router.get("/statistics")
def order_statistics(orchestrator: OrderOrchestrator = Depends(get_orchestrator)) -> OrderStatistics:
    return OrderStatistics(**orchestrator.get_order_statistics())


@orders_router.get("/user/{user_id}")
def user_orders(user_id: int, orchestrator: OrderOrchestrator = Depends(get_orchestrator)) -> list[OrderDetail]:
    """Orders placed by the user, newest first."""
    return [OrderDetail.model_validate(order) for order in orchestrator.get_user_orders(user_id)]


@orders_router.get("/{order_id}/status", response_model_exclude_none=True)
def order_status(order_id: int, orchestrator: OrderOrchestrator = Depends(get_orchestrator)) -> OrderResponse:
    return orchestrator.get_order_status(order_id)


@orders_router.get("/{order_id}")
def get_order(order_id: int, orchestrator: OrderOrchestrator = Depends(get_orchestrator)) -> OrderDetail:
    order = orchestrator.get_order(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return OrderDetail.model_validate(order)


@orders_router.post("/{order_id}/cancel")
def cancel_order(order_id: int, orchestrator: OrderOrchestrator = Depends(get_orchestrator)):
    if orchestrator.cancel_order(order_id):
        return {"order_id": order_id, "status": "CANCELLED", "message": "Order cancelled successfully"}
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "order_id": order_id,
            "status": "CANCELLATION_FAILED",
            "message": "Order cannot be cancelled in its current status",
        },
    )


# --- Product Endpoints ---
products_router = APIRouter(prefix="/api/v1/products", tags=["products"])


@products_router.post("", status_code=status.HTTP_201_CREATED)
def add_product(item: ProductCreate, runtime: Runtime = Depends(get_runtime)) -> ProductOut:
    product = runtime.products.add_product(
        name=item.name,
        price=item.price,
        stock_quantity=item.stock_quantity,
        description=item.description,
    )
    logger.info("Product added", product_id=product.id, stock_quantity=product.stock_quantity)
    return ProductOut.model_validate(product)


@products_router.get("")
def list_products(runtime: Runtime = Depends(get_runtime)) -> list[ProductOut]:
    return [ProductOut.model_validate(product) for product in runtime.products.list_products()]


@products_router.get("/{product_id}")
def get_product(product_id: int, runtime: Runtime = Depends(get_runtime)) -> ProductOut:
    product = runtime.products.get_product(product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return ProductOut.model_validate(product)


@products_router.put("/{product_id}/stock")
def update_stock(product_id: int, update: StockUpdate, runtime: Runtime = Depends(get_runtime)) -> ProductOut:
    product = runtime.inventory.update_product_stock(product_id, update.stock_quantity)
    return ProductOut.model_validate(product)


# --- Error Handlers ---
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "ERROR", "message": message})


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body") or "request"
        problems.append(f"{field}: {error['msg']}")
    return _error(status.HTTP_400_BAD_REQUEST, "; ".join(problems))


async def handle_order_validation(request: Request, exc: OrderValidationError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, str(exc))


async def handle_not_found(request: Request, exc: Exception) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, str(exc))


async def handle_processing_error(request: Request, exc: OrderProcessingError) -> JSONResponse:
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


# --- App Instance ---
def create_app(runtime: Runtime | None = None) -> FastAPI:
    """Build the API. Without a runtime, one is built from the environment at startup and closed at shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = runtime is None
        if owned:
            configure_logging()
        app.state.runtime = runtime or build_runtime()
        try:
            yield
        finally:
            if owned:
                app.state.runtime.shutdown()

    app = FastAPI(title="Order Fulfillment Service", lifespan=lifespan)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(OrderValidationError, handle_order_validation)
    app.add_exception_handler(OrderNotFoundError, handle_not_found)
    app.add_exception_handler(ProductNotFoundError, handle_not_found)
    app.add_exception_handler(OrderProcessingError, handle_processing_error)

    @app.get("/")
    def root():
        """Health check endpoint."""
        return {"message": "Order service is running"}

    app.include_router(orders_router)
    app.include_router(products_router)
    return app


app = create_app()
