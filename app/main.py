import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# ✅ Import All API Routes
from app.api.routes import gateway, health, usage

from app.core import config
from app.core.logging_config import setup_logging
from app.db.init_db import init_db

setup_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Growbot AI gateway started")
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="MasterGrowbot AI Gateway", lifespan=lifespan)

# ✅ CORS: the mobile webview calls from capacitor:// and http://localhost origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(gateway.router)
app.include_router(usage.router)
app.include_router(health.router)


# ============================================
# ✅ ROOT ENDPOINT
# ============================================

@app.get("/")
def root():
    return {"status": "Growbot AI gateway running"}
