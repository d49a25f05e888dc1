"""
FastAPI entrypoint.

Routes:
- GET  /               static front-end page
- POST /analyze        upload or paste a sample, run the analysis for this session
- GET  /session        current session view
- POST /session/model  select which model's pipeline to show
- POST /reset          back to the input form
"""

import os
import logging
from dotenv import load_dotenv, find_dotenv

# Load environment variables from .env file (optional).
# Some editors save .env as UTF-16; support both UTF-8 and UTF-16.
_dotenv_path = find_dotenv(usecwd=True) or None
if _dotenv_path:
    try:
        load_dotenv(_dotenv_path)
    except UnicodeError:
        load_dotenv(_dotenv_path, encoding="utf-16")
else:
    # No .env found; rely on process env
    load_dotenv()

# Configure logging with environment-based level
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)
logger.info("PipelinePilot starting with LOG_LEVEL=%s", LOG_LEVEL)

from fastapi import FastAPI, UploadFile, File, Form, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse
from typing import Optional

from .dataset import PASTED_FILENAME, build_dataset_info
from .llm_client import get_api_key
from .schemas import ModelSelection, SessionView
from .session import SessionBusyError, SessionStore

# Configuration from environment with sensible defaults
MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "10"))

_STATIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "static")

app = FastAPI(title="PipelinePilot")
sessions = SessionStore()


def _session_id(request: Request) -> Optional[str]:
    return request.headers.get("x-session-id")


@app.get("/")
def root():
    return FileResponse(os.path.join(_STATIC_DIR, "index.html"))


@app.get("/healthz")
def healthz():
    return {"ok": True, "llm_configured": bool(get_api_key())}


async def _read_upload(file: UploadFile) -> str:
    """Read an uploaded CSV/TSV file as text, enforcing the size limit."""
    raw = await file.read()
    if len(raw) > MAX_FILE_SIZE_MB * 1024 * 1024:
        raise HTTPException(status_code=400, detail=f"File exceeds {MAX_FILE_SIZE_MB} MB limit")
    # Undecodable bytes become U+FFFD rather than rejecting e.g. Latin-1 exports
    return raw.decode("utf-8-sig", errors="replace")


@app.post("/analyze", response_model=SessionView)
async def analyze_endpoint(
    request: Request,
    target: Optional[str] = Form(None),
    pasted_data: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
):
    session_id = _session_id(request)
    logger.info(
        "analyze.request session_id=%s has_file=%s has_paste=%s",
        session_id,
        bool(file and file.filename),
        bool(pasted_data and pasted_data.strip()),
    )

    if file is not None and file.filename:
        raw_text = await _read_upload(file)
        filename = file.filename
    elif pasted_data and pasted_data.strip():
        raw_text = pasted_data
        filename = PASTED_FILENAME
    else:
        raise HTTPException(status_code=400, detail="Upload a CSV file or paste dataset rows.")

    if not raw_text.strip():
        raise HTTPException(status_code=400, detail="Dataset is empty.")

    dataset = build_dataset_info(raw_text, filename)
    session = sessions.get(session_id)

    try:
        view = await run_in_threadpool(session.submit, dataset, target)
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(
        "analyze.response session_id=%s phase=%s selected_model=%s error=%s",
        session_id,
        view.phase,
        view.selected_model,
        bool(view.error),
    )
    return view


@app.get("/session", response_model=SessionView)
def get_session(request: Request):
    return sessions.get(_session_id(request)).view()


@app.post("/session/model", response_model=SessionView)
def select_model(request: Request, req: ModelSelection):
    return sessions.get(_session_id(request)).select_model(req.model)


@app.post("/reset", response_model=SessionView)
def reset_session(request: Request):
    try:
        return sessions.get(_session_id(request)).reset()
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
