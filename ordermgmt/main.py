from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import crud, models, orders, schemas
from .auth import Actor, create_access_token, decode_access_token, verify_password
from .config import get_settings
from .db import Base, SessionLocal, engine
from .errors import (
    ConcurrencyConflict,
    CustomerNotFound,
    DuplicateEmail,
    DuplicateSku,
    OrderError,
    OrderLocked,
    OrderNotFound,
    PermissionDenied,
    PersistenceFailure,
    ProductInUse,
    ProductNotFound,
    ValidationFailed,
)
from .logging_config import configure_logging

# Create tables if not existing (for demo). Schema upgrades live in migration/.
Base.metadata.create_all(bind=engine)
configure_logging()


def seed_admin() -> None:
    settings = get_settings()
    if not (settings.admin_email and settings.admin_password):
        return
    with SessionLocal() as db:
        crud.ensure_initial_admin(db, settings.admin_email, settings.admin_password)


seed_admin()

app = FastAPI(title="Order Management")

ERROR_STATUS = {
    OrderNotFound: 404,
    ProductNotFound: 404,
    CustomerNotFound: 404,
    PermissionDenied: 403,
    OrderLocked: 409,
    ConcurrencyConflict: 409,
    ProductInUse: 409,
    DuplicateEmail: 409,
    DuplicateSku: 409,
    PersistenceFailure: 500,
}


# Dependency to get DB session per request

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor(
    request: Request,
    db: Session = Depends(get_db),
    x_acting_user_id: Optional[int] = Header(default=None),
) -> Actor:
    # resolve acting user: prefer Authorization bearer token, fall back to X-Acting-User-Id
    acting_id = None
    auth = request.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        token = auth.split(None, 1)[1]
        try:
            payload_token = decode_access_token(token)
            acting_id = int(payload_token.get("sub"))
        except Exception:
            raise HTTPException(status_code=401, detail="invalid token")
    elif x_acting_user_id is not None:
        acting_id = int(x_acting_user_id)

    if acting_id is None:
        raise HTTPException(status_code=401, detail="missing acting user header or token")
    acting = db.get(models.User, acting_id)
    if not acting or not acting.is_active:
        raise HTTPException(status_code=403, detail="acting user not found or inactive")
    return Actor(user_id=acting.id, role=acting.role)


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    status_code = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    body = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, ValidationFailed):
        body["errors"] = [{"field": e.field, "message": e.message} for e in exc.errors]
    return JSONResponse(status_code=status_code, content=body)


def order_response(result: orders.OperationResult) -> schemas.OrderResult:
    order = schemas.OrderRead.model_validate(result.order) if result.order is not None else None
    return schemas.OrderResult(order=order, messages=result.messages)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/auth/login")
def auth_login(payload: dict, db: Session = Depends(get_db)):
    email = payload.get("email")
    pwd = payload.get("password")
    if not email or not pwd:
        raise HTTPException(status_code=400, detail="email and password required")
    user = crud.get_user_by_email(db, email)
    if not user or not user.is_active or not user.password_hash:
        raise HTTPException(status_code=401, detail="invalid credentials")
    if not verify_password(pwd, user.password_hash):
        raise HTTPException(status_code=401, detail="invalid credentials")
    token = create_access_token(user.id, user.role.value)
    return {"access_token": token, "token_type": "bearer"}


# -------------------- Users --------------------

@app.post("/users", response_model=schemas.UserRead, status_code=201)
def create_user(user: schemas.UserCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return crud.create_user(db, actor, user)


@app.get("/users", response_model=List[schemas.UserRead])
def get_users(active_only: bool = False, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return crud.list_users(db, actor, active_only=active_only)


@app.put("/users/{user_id}", response_model=schemas.UserRead)
def api_update_user(user_id: int, data: schemas.UserUpdate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    user = crud.update_user(db, actor, user_id, data)
    if not user:
        raise HTTPException(status_code=404, detail="user not found")
    return user


@app.delete("/users/{user_id}", response_model=schemas.UserRead)
def api_deactivate_user(user_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    user = crud.deactivate_user(db, actor, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="user not found")
    return user


# -------------------- Products --------------------

@app.post("/products", response_model=schemas.ProductRead, status_code=201)
def api_create_product(data: schemas.ProductCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return crud.create_product(db, actor, data)


@app.get("/products", response_model=List[schemas.ProductRead])
def api_list_products(active_only: bool = False, in_stock_only: bool = False, db: Session = Depends(get_db)):
    return crud.list_products(db, active_only=active_only, in_stock_only=in_stock_only)


@app.get("/products/{product_id}", response_model=schemas.ProductRead)
def api_get_product(product_id: int, db: Session = Depends(get_db)):
    return crud.get_product(db, product_id)


@app.put("/products/{product_id}", response_model=schemas.ProductRead)
def api_update_product(product_id: int, data: schemas.ProductUpdate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return crud.update_product(db, actor, product_id, data)


@app.delete("/products/{product_id}")
def api_delete_product(product_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    if not crud.delete_product(db, actor, product_id):
        raise HTTPException(status_code=404, detail="product not found")
    return {"deleted": product_id}


# -------------------- Orders --------------------

@app.post("/orders", response_model=schemas.OrderResult, status_code=201)
def api_create_order(data: schemas.OrderCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return order_response(orders.create_order(db, actor, data))


@app.get("/orders", response_model=List[schemas.OrderRead])
def api_list_orders(filters: schemas.OrderFilter = Depends(), db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return crud.list_orders(db, actor, filters)


@app.get("/orders/{order_id}", response_model=schemas.OrderRead)
def api_get_order(order_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return orders.get_order(db, actor, order_id)


@app.put("/orders/{order_id}", response_model=schemas.OrderResult)
def api_update_order(order_id: int, data: schemas.OrderUpdate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return order_response(orders.update_order(db, actor, order_id, data))


@app.delete("/orders/{order_id}", response_model=schemas.OrderResult)
def api_delete_order(order_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return order_response(orders.delete_order(db, actor, order_id))


@app.post("/orders/{order_id}/status", response_model=schemas.OrderResult)
def api_change_status(order_id: int, change: schemas.StatusChange, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return order_response(orders.change_status(db, actor, order_id, change.status))
