import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from conduit.auth.passwords import PasswordHasher
from conduit.auth.tokens import TokenCodec
from conduit.cache import cache
from conduit.config import settings
from conduit.errors import install_exception_handlers
from conduit.middleware import RequestContextMiddleware
from conduit.routers import articles, profiles, tags, users

logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logging.getLogger("conduit").setLevel(settings.LOG_LEVEL)

@asynccontextmanager
async def lifespan(app: FastAPI):
    await cache.connect()
    yield
    await cache.disconnect()
    app.state.password_hasher.shutdown()

app = FastAPI(
    title="Conduit API",
    description="Articles, comments, profiles, follows and favorites over PostgreSQL",
    version="1.0.0",
    lifespan=lifespan,
)

# Built once per process from configuration and handed to request handlers
# through conduit.auth.dependencies.
app.state.token_codec = TokenCodec(
    settings.HMAC_KEY,
    session_length=timedelta(days=settings.SESSION_LENGTH_DAYS),
)
app.state.password_hasher = PasswordHasher(
    rounds=settings.BCRYPT_ROUNDS,
    max_workers=settings.PASSWORD_HASH_WORKERS,
)

install_exception_handlers(app)

# Middleware
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-Id"],
)

# Routers
app.include_router(users.router)
app.include_router(profiles.router)
app.include_router(articles.router)
app.include_router(tags.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
