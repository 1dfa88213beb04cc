import logging
import os
from pathlib import Path

from dotenv import load_dotenv

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from handlers.editor_handler import router as editor_router
from handlers.health_handler import router as health_router
from handlers.template_handler import router as template_router
from operators.session_registry import EditorSessionRegistry

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(ROOT_DIR / ".env")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


def _attach_file_handler(
    logger_name: str,
    log_file_path: Path,
    level_name: str | None = None,
) -> None:
    logger_level = (level_name or LOG_LEVEL).upper()
    logger_level_value = getattr(logging, logger_level, logging.INFO)

    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setLevel(logger_level_value)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    target_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(log_file_path)
        for handler in target_logger.handlers
    ):
        target_logger.addHandler(file_handler)
    target_logger.setLevel(logger_level_value)

EDITOR_LOG_FILE = os.getenv("EDITOR_LOG_FILE", "").strip()
EDITOR_LOG_LEVEL = os.getenv("EDITOR_LOG_LEVEL", "").strip() or None
if EDITOR_LOG_FILE:
    log_path = Path(EDITOR_LOG_FILE)
    if not log_path.is_absolute():
        log_path = ROOT_DIR / log_path
    _attach_file_handler("operators", log_path, level_name=EDITOR_LOG_LEVEL)
    _attach_file_handler("handlers", log_path, level_name=EDITOR_LOG_LEVEL)

app = FastAPI(title="Trendzo Template Editor")
app.state.editor_sessions = EditorSessionRegistry()


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    # Raw inputs may hold NaN/Infinity, which strict JSON cannot encode.
    errors = [
        {key: value for key, value in error.items() if key != "input"}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})


app.add_exception_handler(RequestValidationError, _validation_exception_handler)


app.include_router(health_router)
app.include_router(template_router)
app.include_router(editor_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:4173",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
