import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from database import dispose_db, init_db
from api.applications import router as applications_router
from api.form_fields import router as form_fields_router
from api.deps import get_notifier
from services.errors import IntakeError
from services.notifications import EmailDispatcher
from services.storage import LocalUploadStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    app.state.notifier = EmailDispatcher(settings.mail_config())
    app.state.upload_store = LocalUploadStore(settings.upload_dir)
    yield
    await dispose_db()


app = FastAPI(
    title=settings.app_name,
    description="Loan application intake, validation and lifecycle API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IntakeError)
async def intake_error_handler(request: Request, exc: IntakeError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": f"Validation failed: {', '.join(problems)}"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) if settings.debug else "Server error"
    return JSONResponse(status_code=500, content={"success": False, "message": message})


app.include_router(applications_router)
app.include_router(form_fields_router)
app.mount(settings.upload_url_prefix, StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/mail")
async def mail_health(notifier: EmailDispatcher = Depends(get_notifier)):
    """Checks the SMTP settings and that the server accepts our login."""
    result = await notifier.verify()
    return JSONResponse(
        status_code=200 if result.success else 503,
        content={"success": result.success, "data": result.to_dict()},
    )
