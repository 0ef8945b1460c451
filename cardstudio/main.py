# cardstudio/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor
import asyncio
import logging
import os

from cardstudio.config.settings import settings
from cardstudio.delivery.api.editor import router
from cardstudio.domain.editor_service import EditorService
from cardstudio.infrastructure.catalog.asset_loader import AssetResolver, TemplateCatalog

logging.getLogger("PIL").setLevel(logging.WARNING)
logger = logging.getLogger("uvicorn.error")

# --- Lazy service bootstrap state ---
_service_lock = asyncio.Lock()


async def _ensure_service(app: FastAPI) -> None:
    async with _service_lock:
        if getattr(app.state, "editor_service", None) is not None:
            return
        logger.info("Memulai inisialisasi EditorService (lazy-init)...")
        catalog = await TemplateCatalog.load()
        app.state.editor_service = EditorService(
            catalog=catalog,
            resolver=AssetResolver(),
            executor=app.state.executor,
        )
        logger.info(f"Inisialisasi service selesai ({len(catalog)} template).")


@asynccontextmanager
async def lifespan(app: FastAPI):
    max_workers = min(4, os.cpu_count() or 1)  # Conservative limit
    app.state.executor = ThreadPoolExecutor(max_workers=max_workers)
    app.state.editor_service = None
    logger.info(f"Service '{settings.PROJECT_NAME}' dimulai (mode: {settings.ENVIRONMENT}).")
    logger.info(f"Shared ThreadPoolExecutor dibuat dengan {max_workers} workers.")
    yield
    logger.info("Menutup ThreadPoolExecutor...")
    app.state.executor.shutdown(wait=True)
    logger.info("Service berhenti.")


app = FastAPI(
    title="Card Studio",
    description="Compose a card from a template, an uploaded photo and text overlays, and export it at full resolution",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Notification"],
)


# Lazy-load only for API routes
@app.middleware("http")
async def lazy_boot(request: Request, call_next):
    if request.url.path.startswith(settings.API_V1_STR):
        await _ensure_service(request.app)
    return await call_next(request)


app.include_router(router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    return {"message": "Card Studio Service", "version": "1.0.0", "status": "ok"}


@app.get("/health")
async def health_check():
    service = getattr(app.state, "editor_service", None)
    return {
        "status": "ok",
        "service": "Card Studio 1.0",
        "service_ready": service is not None,
        "sessions": len(service.sessions) if service is not None else 0,
    }
