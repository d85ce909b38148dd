from __future__ import annotations

import logging
from typing import Annotated, AsyncIterator, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from sqlmodel import Session
from starlette.middleware.sessions import SessionMiddleware

from . import crud, schemas, security
from .broadcast import END_OF_STREAM, BroadcastHub, Subscriber
from .config import DEFAULT_SESSION_SECRET, Settings, get_settings
from .database import engine, get_session, init_db
from .exceptions import InternalError, InvalidStatus, NotFound, ValidationError
from .security import CurrentUser, StaffGuard
from .service import OrderService

logger = logging.getLogger(__name__)

app = FastAPI(title="Cafe Orders", version="0.1.0")
settings = get_settings()
app.state.hub = BroadcastHub(heartbeat_interval=settings.heartbeat_interval)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    max_age=settings.session_max_age,
)

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def check_session_secret(current: Settings) -> bool:
    if current.session_secret == DEFAULT_SESSION_SECRET:
        logger.warning("SESSION_SECRET is not set; staff session cookies are signed with a public placeholder")
        return False
    return True


@app.on_event("startup")
def on_startup() -> None:
    logging.basicConfig(level=settings.log_level.upper())
    check_session_secret(settings)
    init_db()
    with Session(engine) as session:
        crud.ensure_order_sequence(session)
        if settings.seed_menu:
            crud.ensure_default_menu_items(session)
        security.ensure_admin_user(session, settings.admin_username, settings.admin_password)


@app.on_event("shutdown")
def on_shutdown() -> None:
    app.state.hub.close()


# -------------------------
# Error mapping
# -------------------------

def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, exc)


@app.exception_handler(InvalidStatus)
async def invalid_status_handler(request: Request, exc: InvalidStatus) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, exc)


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(InternalError)
async def internal_error_handler(request: Request, exc: InternalError) -> JSONResponse:
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, exc)


# -------------------------
# Dependencies
# -------------------------

def get_hub(request: Request) -> BroadcastHub:
    return request.app.state.hub


def get_order_service(
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
) -> OrderService:
    return OrderService(
        session,
        hub,
        strict_transitions=settings.strict_status_transitions,
        eta_base_minutes=settings.queue_eta_base_minutes,
        eta_per_item_minutes=settings.queue_eta_per_item_minutes,
    )


Orders = Annotated[OrderService, Depends(get_order_service)]
Hub = Annotated[BroadcastHub, Depends(get_hub)]


@app.get("/api/health")
def health_check() -> dict:
    return {"status": "ok", "message": "Cafe Order API is running"}


# -------------------------
# Auth
# -------------------------

@app.post("/api/auth/login", response_model=schemas.UserResponse)
def login(
    payload: schemas.Credentials,
    request: Request,
    session: Session = Depends(get_session),
):
    user = security.authenticate(session, payload.username, payload.password)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return {"user": security.login_user(request, user)}


@app.post("/api/auth/register", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: schemas.Registration,
    request: Request,
    session: Session = Depends(get_session),
):
    if not settings.allow_registration:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Registration is disabled")
    if crud.get_user_by_username(session, payload.username) is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already exists")
    user = crud.create_user(
        session,
        username=payload.username,
        password_hash=security.hash_password(payload.password),
        role="admin",
    )
    return {"user": security.login_user(request, user)}


@app.post("/api/auth/logout", response_model=schemas.MessageResponse)
def logout(request: Request):
    security.logout_user(request)
    return {"message": "Logged out successfully"}


@app.get("/api/auth/me", response_model=schemas.UserResponse)
def me(user: CurrentUser):
    return {"user": user}


# -------------------------
# Menu
# -------------------------

@app.get("/api/menu", response_model=List[schemas.MenuItemRead])
def list_menu_items(
    include_inactive: bool = False,
    session: Session = Depends(get_session),
):
    return crud.list_menu_items(session, active_only=not include_inactive)


@app.get("/api/menu/{slug}", response_model=schemas.MenuItemRead)
def get_menu_item(slug: str, session: Session = Depends(get_session)):
    return _require_menu_item(session, slug)


@app.post("/api/menu", response_model=schemas.MenuItemRead, status_code=status.HTTP_201_CREATED)
def create_menu_item(
    payload: schemas.MenuItemCreate,
    _: StaffGuard,
    session: Session = Depends(get_session),
):
    return crud.create_menu_item(session, payload.model_dump(exclude_unset=True))


@app.put("/api/menu/{slug}", response_model=schemas.MenuItemRead)
def update_menu_item(
    slug: str,
    payload: schemas.MenuItemUpdate,
    _: StaffGuard,
    session: Session = Depends(get_session),
):
    menu_item = _require_menu_item(session, slug)
    return crud.update_menu_item(session, menu_item, payload.model_dump(exclude_unset=True))


@app.delete("/api/menu/{slug}", response_model=schemas.MessageResponse)
def delete_menu_item(
    slug: str,
    _: StaffGuard,
    session: Session = Depends(get_session),
):
    crud.delete_menu_item(session, _require_menu_item(session, slug))
    return {"message": "Menu item deleted successfully"}


def _require_menu_item(session: Session, slug: str):
    menu_item = crud.get_menu_item_by_slug(session, slug)
    if not menu_item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Menu item not found")
    return menu_item


# -------------------------
# Order streams
# -------------------------

async def _event_stream(hub: BroadcastHub, subscriber: Subscriber) -> AsyncIterator[str]:
    try:
        while True:
            frame = await subscriber.next_frame()
            if frame is END_OF_STREAM:
                break
            yield frame
    finally:
        hub.unsubscribe(subscriber)


@app.get("/api/orders/stream")
async def admin_stream(_: StaffGuard, hub: Hub):
    subscriber = hub.subscribe_admin()
    return StreamingResponse(
        _event_stream(hub, subscriber),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.get("/api/orders/{order_id}/stream")
async def order_stream(order_id: str, hub: Hub):
    subscriber = hub.subscribe_order(order_id)
    return StreamingResponse(
        _event_stream(hub, subscriber),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# -------------------------
# Orders
# -------------------------

@app.post("/api/orders", response_model=schemas.OrderRead, status_code=status.HTTP_201_CREATED)
def create_order(payload: schemas.OrderCreate, orders: Orders):
    return orders.create_order(payload.customer_name, payload.items)


@app.get("/api/orders", response_model=List[schemas.OrderRead])
def list_orders(
    _: StaffGuard,
    orders: Orders,
    status: Optional[str] = None,
):
    return orders.list_orders(status)


@app.get("/api/orders/number/{order_number}", response_model=schemas.OrderRead)
def get_order_by_number(order_number: int, orders: Orders):
    return orders.get_order_by_number(order_number)


@app.get("/api/orders/queue/position/{order_id}", response_model=schemas.QueuePosition)
def get_queue_position(order_id: str, orders: Orders):
    estimate = orders.queue_position(order_id)
    return schemas.QueuePosition(
        position=estimate.position,
        queue_length=estimate.queue_length,
        eta_minutes=estimate.eta_minutes,
    )


@app.get("/api/orders/{order_id}", response_model=schemas.OrderRead)
def get_order(order_id: str, orders: Orders):
    return orders.get_order(order_id)


@app.put("/api/orders/{order_id}/status", response_model=schemas.OrderRead)
def update_order_status(
    order_id: str,
    payload: schemas.StatusUpdate,
    _: StaffGuard,
    orders: Orders,
):
    return orders.update_status(order_id, payload.status)


@app.post("/api/orders/{order_id}/advance", response_model=schemas.OrderRead)
def advance_order(order_id: str, _: StaffGuard, orders: Orders):
    return orders.advance(order_id)


@app.delete("/api/orders/{order_id}", response_model=schemas.MessageResponse)
def delete_order(order_id: str, _: StaffGuard, orders: Orders):
    orders.delete_order(order_id)
    return {"message": "Order deleted successfully"}
