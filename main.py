import logging
import os
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, HTTPException, Depends, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from bson import ObjectId
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from database import get_db, ensure_indexes, create_document, get_documents, serialize_doc
from mailer import SMTPMailer
from orders import place_order
from payments import DEFAULT_API_URL, RazorpayClient
from schemas import Order, OrderItem, ShippingInfo, User as UserSchema

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# JWT Config
SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days

STORE_NAME = os.getenv("STORE_NAME", "Pearl Jewels")
PUBLIC_DIR = os.getenv("PUBLIC_DIR", "public")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://127.0.0.1:5500,http://localhost:5500").split(",") if o.strip()]

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)

payment_gateway = RazorpayClient(
    key_id=os.getenv("RAZORPAY_KEY_ID", ""),
    key_secret=os.getenv("RAZORPAY_KEY_SECRET", ""),
    api_url=os.getenv("RAZORPAY_API_URL", DEFAULT_API_URL),
    currency=os.getenv("PAYMENT_CURRENCY", "INR"),
)

mailer = SMTPMailer(
    host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
    port=int(os.getenv("SMTP_PORT", "587")),
    username=os.getenv("EMAIL_USER"),
    password=os.getenv("EMAIL_PASS"),
    sender=os.getenv("EMAIL_FROM"),
)

app = FastAPI(title="Pearl Jewels API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

# Messages returned when a request body fails validation
VALIDATION_MESSAGES = {
    "/api/signup": "All fields required",
    "/api/login": "All fields required",
    "/api/razorpay/order": "Amount is required",
    "/api/orders": "Missing order details",
}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = VALIDATION_MESSAGES.get(request.url.path, "Invalid request")
    logger.debug("Rejected body for %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


@app.on_event("startup")
def create_indexes():
    if database.db is not None:
        ensure_indexes(database.db)


# Utilities

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # stored value is not a recognizable hash
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Unauthorized")
    return payload


@contextmanager
def upstream_failure(message: str):
    """Turn unexpected store/gateway errors into a 500 carrying `message`."""
    try:
        yield
    except HTTPException:
        raise
    except Exception:
        logger.exception(message)
        raise HTTPException(status_code=500, detail=message)


def get_payment_gateway() -> RazorpayClient:
    return payment_gateway


def get_mailer() -> SMTPMailer:
    return mailer


def normalize_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


# Auth models
class SignupInput(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    contact: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)


class LoginInput(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)


class PaymentOrderInput(BaseModel):
    amount: int = Field(..., gt=0, description="Amount in minor units (paise)")


class OrderInput(BaseModel):
    items: List[OrderItem] = Field(..., min_length=1)
    total: float = Field(..., gt=0)
    shipping: ShippingInfo
    payment_method: Optional[str] = Field(None, validation_alias=AliasChoices("paymentMethod", "payment_method"))
    payment_id: Optional[str] = Field(None, validation_alias=AliasChoices("paymentId", "payment_id"))


# Dependency to get the authenticated user id

def get_current_user_id(authorization: Optional[str] = Header(default=None)) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="No token provided")
    parts = authorization.split(" ")
    token = parts[1] if len(parts) > 1 else ""
    if not token:
        raise HTTPException(status_code=401, detail="Invalid token")
    payload = decode_token(token)
    return payload["sub"]


# Routes
@app.get("/health")
def health():
    return {"success": True, "message": "Server is running"}


@app.get("/api/products")
def list_products(db: Database = Depends(get_db)):
    with upstream_failure("Error fetching products"):
        products = [serialize_doc(p) for p in get_documents(db, "product")]
    return {"success": True, "products": products}


# Auth
@app.post("/api/signup")
def signup(payload: SignupInput, db: Database = Depends(get_db)):
    email = payload.email
    with upstream_failure("Signup failed"):
        if db["user"].find_one({"email": email}):
            raise HTTPException(status_code=400, detail="Email already registered")
        user = UserSchema(
            name=payload.name,
            email=email,
            password_hash=hash_password(payload.password),
            phone=payload.contact,
        )
        try:
            user_id = create_document(db, "user", user)
        except DuplicateKeyError:
            raise HTTPException(status_code=400, detail="Email already registered")
    token = create_access_token({"sub": user_id})
    return {"success": True, "token": token}


@app.post("/api/login")
def login(payload: LoginInput, db: Database = Depends(get_db)):
    with upstream_failure("Login failed"):
        user = db["user"].find_one({"email": payload.email})
    if not user:
        raise HTTPException(status_code=400, detail="User not found")
    if not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    token = create_access_token({"sub": str(user["_id"])})
    return {"success": True, "token": token}


@app.get("/api/me")
def me(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    if not ObjectId.is_valid(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    with upstream_failure("Failed to fetch user info"):
        user = db["user"].find_one({"_id": ObjectId(user_id)}, {"name": 1, "email": 1, "phone": 1})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"success": True, "user": {"name": user.get("name"), "email": user.get("email"), "phone": user.get("phone")}}


# Payments
@app.post("/api/razorpay/order")
def create_payment_order(
    payload: PaymentOrderInput,
    user_id: str = Depends(get_current_user_id),
    gateway: RazorpayClient = Depends(get_payment_gateway),
):
    with upstream_failure("Razorpay order creation failed"):
        order = gateway.create_order(payload.amount)
    return {"success": True, "order": order}


# Orders
@app.post("/api/orders")
def create_order(
    payload: OrderInput,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    notifier: SMTPMailer = Depends(get_mailer),
):
    order = Order(
        user=user_id,
        items=payload.items,
        total=payload.total,
        shipping=payload.shipping,
        payment_method=payload.payment_method,
        payment_id=payload.payment_id or None,
    )
    with upstream_failure("Order failed"):
        placement = place_order(db, notifier, order, store_name=STORE_NAME)
    if placement.notification.status == "failed":
        logger.warning("Order %s placed without confirmation email", placement.order_id)
    return {"success": True, "message": "Order placed successfully", "orderId": placement.order_id}


# Front-end
@app.get("/{full_path:path}", include_in_schema=False)
def frontend(full_path: str):
    public = Path(PUBLIC_DIR).resolve()
    candidate = (public / full_path).resolve()
    if full_path and candidate.is_file() and public in candidate.parents:
        return FileResponse(candidate)
    index = public / "index.html"
    if index.is_file():
        return FileResponse(index)
    raise HTTPException(status_code=404, detail="Not found")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
