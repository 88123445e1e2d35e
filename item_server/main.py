"""
Item Server. items.ItemService RPCs over HTTP (POST /items.ItemService/<Method>, JSON bodies).
Every call passes through IdentityMiddleware; each route hands the resolved identity to ItemService.
Port 9090.
"""
import logging
import secrets
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from item_server.config import (
    ADMIN_SUBJECTS,
    CORS_ORIGINS,
    DATABASE_URL,
    JWT_EXPIRES,
    JWT_SECRET,
    OAUTH_API_URL,
    OAUTH_CLIENT_ID,
    OAUTH_CLIENT_SECRET,
    OAUTH_HTTP_TIMEOUT,
    OAUTH_PROVIDER_URL,
)
from item_server.database import init_db, make_engine, make_session_factory
from item_server.errors import ItemServerError
from item_server.identity import Identity, IdentityMiddleware, get_identity
from item_server.oauth import OAuthExchanger
from item_server.policy import AuthorizationPolicy
from item_server.schemas import Items, JsonObject, Query, SearchQuery, Token, User
from item_server.service import ItemService
from item_server.store import SqlDocumentStore
from item_server.tokens import TokenCodec

logger = logging.getLogger(__name__)

SERVICE_PATH = "/items.ItemService"


def _jwt_secret() -> str:
    if JWT_SECRET:
        return JWT_SECRET
    logger.warning("ITEMS_JWT_SECRET is not set; using a random secret (tokens will not survive a restart)")
    return secrets.token_urlsafe(32)


engine = make_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)
codec = TokenCodec(_jwt_secret(), expires_in=JWT_EXPIRES)

item_service = ItemService(
    store=SqlDocumentStore(SessionLocal),
    codec=codec,
    policy=AuthorizationPolicy(ADMIN_SUBJECTS),
    exchanger=OAuthExchanger(
        codec,
        client_id=OAUTH_CLIENT_ID,
        client_secret=OAUTH_CLIENT_SECRET,
        provider_url=OAUTH_PROVIDER_URL,
        api_url=OAUTH_API_URL,
        timeout=OAUTH_HTTP_TIMEOUT,
    ),
)


def get_item_service() -> ItemService:
    """Dependency: the process-wide ItemService (tests override this)."""
    return item_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the document table on startup."""
    init_db(engine)
    logger.info("Document store ready (admins configured: %d)", len(ADMIN_SUBJECTS))
    yield


app = FastAPI(title="Item Server", version="0.1.0", lifespan=lifespan)
app.add_middleware(IdentityMiddleware, codec=codec)
# Browser clients send the Authorization header cross-origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ItemServerError)
async def item_server_error_handler(request: Request, exc: ItemServerError):
    """Translate service errors into the {"detail": {"error", "error_description"}} body."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"error": exc.error, "error_description": exc.description}},
    )


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "item_server"}


@app.post(f"{SERVICE_PATH}/AddItem")
def add_item(
    query: Query,
    identity: Identity = Depends(get_identity),
    service: ItemService = Depends(get_item_service),
) -> JsonObject:
    """Authenticated. Insert a schemaless item; returns it with its new id."""
    return service.add_item(identity, query)


@app.post(f"{SERVICE_PATH}/GetItem")
def get_item(query: Query, service: ItemService = Depends(get_item_service)) -> JsonObject:
    return service.get_item(query)


@app.post(f"{SERVICE_PATH}/GetItems")
def get_items(service: ItemService = Depends(get_item_service)) -> Items:
    """All items, unpaginated."""
    return Items(items=service.get_items())


@app.post(f"{SERVICE_PATH}/UpdateItem")
def update_item(
    query: Query,
    identity: Identity = Depends(get_identity),
    service: ItemService = Depends(get_item_service),
) -> JsonObject:
    """Admin only."""
    return service.update_item(identity, query)


@app.post(f"{SERVICE_PATH}/DeleteItem")
def delete_item(
    query: Query,
    identity: Identity = Depends(get_identity),
    service: ItemService = Depends(get_item_service),
) -> Query:
    """Admin only. Echoes the query."""
    return service.delete_item(identity, query)


@app.post(f"{SERVICE_PATH}/Search")
def search(search_query: SearchQuery, service: ItemService = Depends(get_item_service)) -> Items:
    return Items(items=service.search(search_query))


@app.post(f"{SERVICE_PATH}/VerifyOauth")
async def verify_oauth(token: Token, service: ItemService = Depends(get_item_service)) -> User:
    """Exchange a one-time provider code (token.token) for a local token."""
    return await service.verify_oauth(token)


@app.post(f"{SERVICE_PATH}/VerifyJwt")
def verify_jwt(token: Token, service: ItemService = Depends(get_item_service)) -> User:
    """Validate a local token. Invalid or expired tokens are errors here, never anonymous."""
    return service.verify_jwt(token)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "item_server.main:app",
        host="127.0.0.1",
        port=9090,
        reload=True,
    )
