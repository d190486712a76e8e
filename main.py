import hmac
import logging
import math
from contextlib import asynccontextmanager
from typing import Any, List, Optional

from fastapi import FastAPI, Depends, File, Form, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pymongo.errors import PyMongoError
from starlette.datastructures import UploadFile as StarletteUploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import authenticate_admin, clear_session_cookie, is_authenticated, require_admin, set_session_cookie
from config import settings
from database import (
    create_document, delete_document, get_db, get_document_by_id, get_documents,
    ping, reset_db, to_object_id, update_document,
)
from errors import APIError, NotFound, StorageError, Unauthorized, ValidationError
from images import MAX_FORM_PART_BYTES, encode_uploads, normalize_string_list
from schemas import DEFAULT_COLORS, DEFAULT_DELIVERY_FEE, MAX_IMAGES, ORDER_STATUSES, Order, OrderItem, Product
from seed import seed_admin

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Clothing Store API (production=%s)", settings.is_production)
    yield
    reset_db()


app = FastAPI(title="Clothing Store API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

NEWEST_FIRST = [("createdAt", -1), ("_id", -1)]

# pending -> processing -> completed | cancelled
CONVENTIONAL_TRANSITIONS = {
    "pending": {"processing"},
    "processing": {"completed", "cancelled"},
}


# ===================== Error handling =====================
def _error_body(error: str, message: Optional[str] = None) -> dict:
    body = {"error": error}
    if message and not settings.is_production:
        body["message"] = message
    return body


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message or exc.error)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.error, exc.message))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content=_error_body("Invalid request", str(exc.errors())))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    err = StorageError(message=str(exc)[:200])
    return JSONResponse(status_code=err.status_code, content=_error_body(err.error, err.message))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body("Internal server error", repr(exc)))


# ===================== Public Endpoints =====================
@app.get("/")
def root():
    return {"message": "Clothing Store API running"}


@app.get("/health")
async def health(db=Depends(get_db)):
    if await ping(db):
        return {"status": "ok", "database": "connected"}
    # next request gets a fresh client
    reset_db()
    return JSONResponse(status_code=500, content={"status": "error", "database": "disconnected"})


@app.post("/seed")
async def seed(request: Request, key: Optional[str] = None, db=Depends(get_db)):
    provided = request.headers.get("x-seed-key") or key or ""
    if settings.is_production and not (settings.seed_secret and hmac.compare_digest(provided, settings.seed_secret)):
        raise Unauthorized("Unauthorized")
    created = await seed_admin(db, settings.admin_email, settings.admin_password)
    message = "Admin user created successfully" if created else "Admin user already exists"
    return {"message": message, "email": settings.admin_email}


# ===================== Auth =====================
class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


@app.post("/auth/login")
async def login(payload: LoginRequest, response: Response, db=Depends(get_db)):
    if not payload.email or not payload.password:
        raise ValidationError("Email and password are required")
    result = await authenticate_admin(db, payload.email.strip(), payload.password)
    set_session_cookie(response, result["token"])
    return {"message": "Login successful", "user": result["user"]}


@app.post("/auth/logout")
def logout(response: Response):
    clear_session_cookie(response)
    return {"message": "Logout successful"}


@app.get("/auth/verify")
def verify(request: Request):
    return {"authenticated": is_authenticated(request)}


# ===================== Products =====================
def _parse_price(raw: str) -> float:
    try:
        price = float(raw)
    except ValueError:
        raise ValidationError("Price must be a non-negative number")
    if price < 0 or not math.isfinite(price):
        raise ValidationError("Price must be a non-negative number")
    return price


def _parse_stock(raw: str) -> int:
    try:
        qty = int(raw)
    except ValueError:
        raise ValidationError("Stock quantity must be a non-negative integer")
    if qty < 0:
        raise ValidationError("Stock quantity must be a non-negative integer")
    return qty


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("true", "1", "yes", "on")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def _form_value(form, key: str) -> Optional[str]:
    value = form.get(key)
    return value if isinstance(value, str) else None


def _form_list(form, key: str) -> Optional[List[str]]:
    if key not in form:
        return None
    return [v for v in form.getlist(key) if isinstance(v, str)]


@app.get("/products")
async def list_products(db=Depends(get_db)):
    return await get_documents(db, "product", sort=NEWEST_FIRST)


@app.get("/products/{product_id}")
async def get_product(product_id: str, db=Depends(get_db)):
    product = await get_document_by_id(db, "product", product_id)
    if not product:
        raise NotFound("Product not found")
    return product


@app.post("/products", status_code=201)
async def create_product(
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    inStock: Optional[str] = Form(None),
    stockQuantity: Optional[str] = Form(None),
    colors: Optional[List[str]] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    _admin: dict = Depends(require_admin),
    db=Depends(get_db),
):
    name, description, category = _clean(name), _clean(description), _clean(category)
    if not (name and description and category and _clean(price)):
        raise ValidationError("Name, description, price, and category are required")

    product = Product(
        name=name,
        description=description,
        price=_parse_price(price),
        category=category,
        imageUrls=await encode_uploads(images),
        colors=normalize_string_list(colors, split_commas=True) or list(DEFAULT_COLORS),
        inStock=True if inStock is None else _parse_bool(inStock),
        stockQuantity=0 if _clean(stockQuantity) is None else _parse_stock(stockQuantity),
    )
    doc = await create_document(db, "product", product)
    logger.info("Created product %s (%s) with %d images", doc["_id"], doc["name"], len(doc["imageUrls"]))
    return doc


@app.put("/products/{product_id}")
async def update_product(
    product_id: str,
    request: Request,
    _admin: dict = Depends(require_admin),
    db=Depends(get_db),
):
    # kept images come back as data URLs, far beyond the default 1 MB per form field
    form = await request.form(max_part_size=MAX_FORM_PART_BYTES)
    name, description = _form_value(form, "name"), _form_value(form, "description")
    category = _form_value(form, "category")
    price, stock_quantity = _form_value(form, "price"), _form_value(form, "stockQuantity")
    in_stock = _clean(_form_value(form, "inStock"))

    update = {}
    for field, value in (("name", name), ("description", description), ("category", category)):
        if _clean(value):
            update[field] = _clean(value)
    if _clean(price) is not None:
        update["price"] = _parse_price(price)
    if in_stock is not None:
        update["inStock"] = _parse_bool(in_stock)
    if _clean(stock_quantity) is not None:
        update["stockQuantity"] = _parse_stock(stock_quantity)
    color_list = normalize_string_list(_form_list(form, "colors"), split_commas=True)
    if color_list is not None:
        update["colors"] = color_list

    new_urls = await encode_uploads([f for f in form.getlist("images") if isinstance(f, StarletteUploadFile)])
    kept = normalize_string_list(_form_list(form, "existingImages"))
    if new_urls:
        update["imageUrls"] = ((kept or []) + new_urls)[:MAX_IMAGES]
    elif kept is not None:
        update["imageUrls"] = kept[:MAX_IMAGES]

    product = await update_document(db, "product", product_id, update)
    if not product:
        raise NotFound("Product not found")
    logger.info("Updated product %s fields=%s", product_id, sorted(update))
    return product


@app.delete("/products/{product_id}")
async def delete_product(product_id: str, _admin: dict = Depends(require_admin), db=Depends(get_db)):
    if not await delete_document(db, "product", product_id):
        raise NotFound("Product not found")
    logger.info("Deleted product %s", product_id)
    return {"message": "Product deleted successfully"}


# ===================== Orders =====================
class CreateOrderRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    customerName: Optional[str] = None
    customerPhone: Optional[str] = None
    customerAddress: Optional[str] = None
    items: List[OrderItem] = []
    deliveryFee: Optional[float] = Field(None, ge=0, allow_inf_nan=False)


class UpdateOrderStatusRequest(BaseModel):
    status: Any = None


async def _reprice(db, items: List[OrderItem]) -> List[OrderItem]:
    """Replace client-supplied prices and names with the stored product's."""
    priced = []
    for item in items:
        product = await get_document_by_id(db, "product", item.product)
        if not product:
            raise ValidationError("Invalid product in order", f"Unknown product {item.product}")
        priced.append(item.model_copy(update={"price": product["price"], "productName": product["name"]}))
    return priced


async def _expand_products(db, orders: List[dict]) -> List[dict]:
    """Replace each line item's product reference with the current product document."""
    refs = {item["product"] for order in orders for item in order.get("items", [])}
    oids = [oid for oid in (to_object_id(ref) for ref in refs) if oid is not None]
    products = {}
    if oids:
        for product in await get_documents(db, "product", {"_id": {"$in": oids}}):
            products[product["_id"]] = product
    for order in orders:
        for item in order.get("items", []):
            item["product"] = products.get(str(item["product"]))
    return orders


@app.post("/orders", status_code=201)
async def create_order(payload: CreateOrderRequest, db=Depends(get_db)):
    customer = {
        "customerName": _clean(payload.customerName),
        "customerPhone": _clean(payload.customerPhone),
        "customerAddress": _clean(payload.customerAddress),
    }
    if not all(customer.values()) or not payload.items:
        raise ValidationError("Customer information and items are required")

    items = payload.items
    if settings.reprice_orders:
        items = await _reprice(db, items)
    delivery_fee = DEFAULT_DELIVERY_FEE if payload.deliveryFee is None else payload.deliveryFee
    total = sum(i.price * i.quantity for i in items) + delivery_fee
    if not math.isfinite(total):
        raise ValidationError("Order total is out of range")

    order = Order(
        **customer,
        items=items,
        totalAmount=total,
        deliveryFee=delivery_fee,
        status="pending",
    )
    doc = await create_document(db, "order", order)
    logger.info("Created order %s with %d items, total %.2f", doc["_id"], len(items), total)
    return doc


@app.get("/orders")
async def list_orders(_admin: dict = Depends(require_admin), db=Depends(get_db)):
    orders = await get_documents(db, "order", sort=NEWEST_FIRST)
    return await _expand_products(db, orders)


@app.get("/orders/{order_id}")
async def get_order(order_id: str, _admin: dict = Depends(require_admin), db=Depends(get_db)):
    order = await get_document_by_id(db, "order", order_id)
    if not order:
        raise NotFound("Order not found")
    return (await _expand_products(db, [order]))[0]


@app.put("/orders/{order_id}/status")
async def update_order_status(
    order_id: str,
    payload: UpdateOrderStatusRequest,
    _admin: dict = Depends(require_admin),
    db=Depends(get_db),
):
    status = payload.status
    if status not in ORDER_STATUSES:
        raise ValidationError("Valid status is required")

    current = await get_document_by_id(db, "order", order_id)
    if not current:
        raise NotFound("Order not found")
    previous = current.get("status")
    if previous != status and status not in CONVENTIONAL_TRANSITIONS.get(previous, set()):
        logger.warning("Order %s moved off the usual flow: %s -> %s", order_id, previous, status)
    else:
        logger.info("Order %s status %s -> %s", order_id, previous, status)

    order = await update_document(db, "order", order_id, {"status": status})
    if not order:
        raise NotFound("Order not found")
    return (await _expand_products(db, [order]))[0]


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
