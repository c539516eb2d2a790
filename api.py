"""api.py — FastAPI backend for the HerbaScan plant scanner.

Endpoints:
    GET    /health                 — liveness check, reports library size
    POST   /auth/signup            — create an account and sign in
    POST   /auth/login             — sign in
    POST   /auth/logout            — sign out (history switches to guest)
    GET    /auth/session           — current user or null
    POST   /scans                  — accepts a multipart image, identifies it, records the scan
    GET    /scans                  — history, newest first (?bookmarked=true to filter)
    GET    /scans/stats            — total scans, bookmarks, unique plants
    GET    /scans/{scan_id}        — one scan
    POST   /scans/{scan_id}/bookmark — toggle the bookmark flag
    PUT    /scans/{scan_id}/notes  — replace the notes
    DELETE /scans/{scan_id}        — remove a scan
    GET    /library                — search the plant library (?q=)
    GET    /library/{plant_id}     — one library plant

Run::

    uvicorn api:app --reload
"""
from __future__ import annotations

import asyncio
import io
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from accounts.session import AuthStore, validate_login_form, validate_signup_form
from data.schemas import HistoryStats, PlantProfile, ScanResult, User
from data.storage import JsonStorage
from errors import HerbaScanError
from history.store import ScanHistoryStore
from library.catalog import get_plant, load_catalog, search_catalog
from prediction.client import PredictionClient
from scanner import PlantScanner
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


# ── Request bodies ────────────────────────────────────────────────────────────

class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignupRequest(_Body):
    name: str
    email: str
    password: str
    confirm_password: Optional[str] = None


class LoginRequest(_Body):
    email: str
    password: str


class NotesRequest(_Body):
    notes: str


class SessionResponse(_Body):
    user: Optional[User] = None


# ── App factory ───────────────────────────────────────────────────────────────

def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the application.

    State (storage, auth, history, catalog, classifier client) is created in
    the lifespan and hung off ``app.state``; handlers reach it through the
    dependencies below, never through module globals.

    Args:
        settings:  Configuration; ``None`` reads the environment.
        transport: Optional ``httpx`` transport for the classifier client.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or get_settings()
        logging.basicConfig(level=cfg.LOG_LEVEL)

        storage = JsonStorage(cfg.STORAGE_DIR)
        auth = AuthStore(storage, bcrypt_rounds=cfg.BCRYPT_ROUNDS)
        user = await auth.restore()

        history = ScanHistoryStore(storage)
        await history.switch_user(user)

        catalog = load_catalog(cfg.LIBRARY_PATH)
        client = PredictionClient(
            cfg.PREDICTION_BASE_URL,
            timeout=cfg.PREDICTION_TIMEOUT,
            transport=transport,
        )

        app.state.settings = cfg
        app.state.auth = auth
        app.state.history = history
        app.state.catalog = catalog
        app.state.scanner = PlantScanner(client, catalog, history)
        logger.info("HerbaScan ready (classifier at '%s').", cfg.PREDICTION_BASE_URL)

        yield

        await client.aclose()

    app = FastAPI(title="HerbaScan API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HerbaScanError)
    async def herbascan_error_handler(request: Request, exc: HerbaScanError):
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    _register_routes(app)
    return app


# ── Dependencies ──────────────────────────────────────────────────────────────

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth(request: Request) -> AuthStore:
    return request.app.state.auth


def get_history(request: Request) -> ScanHistoryStore:
    return request.app.state.history


def get_catalog(request: Request) -> tuple[PlantProfile, ...]:
    return request.app.state.catalog


def get_scanner(request: Request) -> PlantScanner:
    return request.app.state.scanner


# ── Upload helpers ────────────────────────────────────────────────────────────

def _verify_image(data: bytes) -> None:
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError):
        raise HTTPException(status_code=400, detail="Uploaded file is not a valid image.")


def _write_upload(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def _save_upload(image_dir: Path, filename: Optional[str], data: bytes) -> Path:
    """Store the photo under a fresh name, keeping its extension."""
    suffix = Path(filename or "").suffix.lower() or ".jpg"
    path = image_dir / f"{uuid.uuid4().hex}{suffix}"
    await asyncio.to_thread(_write_upload, path, data)
    return path


# ── Session helpers ───────────────────────────────────────────────────────────

async def _open_history(auth: AuthStore, history: ScanHistoryStore, user: User) -> None:
    """Switch history to *user*, signing back out if their history is unreadable."""
    try:
        await history.switch_user(user)
    except HerbaScanError:
        await auth.logout()
        raise


# ── Routes ────────────────────────────────────────────────────────────────────

def _register_routes(app: FastAPI) -> None:

    @app.get("/health")
    def health(catalog: tuple[PlantProfile, ...] = Depends(get_catalog)):
        return {"status": "ok", "library_size": len(catalog)}

    # ── Accounts ──────────────────────────────────────────────────────────────

    @app.post("/auth/signup", response_model=User, status_code=201)
    async def signup(
        body: SignupRequest,
        auth: AuthStore = Depends(get_auth),
        history: ScanHistoryStore = Depends(get_history),
        cfg: Settings = Depends(get_app_settings),
    ):
        validate_signup_form(
            body.name, body.email, body.password, body.confirm_password,
            min_length=cfg.MIN_PASSWORD_LENGTH,
        )
        user = await auth.signup(body.email.strip(), body.password, body.name.strip())
        await _open_history(auth, history, user)
        return user

    @app.post("/auth/login", response_model=User)
    async def login(
        body: LoginRequest,
        auth: AuthStore = Depends(get_auth),
        history: ScanHistoryStore = Depends(get_history),
    ):
        validate_login_form(body.email, body.password)
        user = await auth.login(body.email.strip(), body.password)
        await _open_history(auth, history, user)
        return user

    @app.post("/auth/logout", status_code=204)
    async def logout(
        auth: AuthStore = Depends(get_auth),
        history: ScanHistoryStore = Depends(get_history),
    ):
        await auth.logout()
        await history.switch_user(None)

    @app.get("/auth/session", response_model=SessionResponse)
    def session(auth: AuthStore = Depends(get_auth)):
        return SessionResponse(user=auth.current_session())

    # ── Scans ─────────────────────────────────────────────────────────────────

    @app.post("/scans", response_model=ScanResult, status_code=201)
    async def create_scan(
        file: UploadFile = File(...),
        scanner: PlantScanner = Depends(get_scanner),
        cfg: Settings = Depends(get_app_settings),
    ):
        data = await file.read()
        _verify_image(data)
        path = await _save_upload(cfg.IMAGE_DIR, file.filename, data)
        try:
            return await scanner.identify(path, image_uri=str(path))
        except HerbaScanError:
            logger.info("Scan failed; removing upload '%s'.", path.name)
            await asyncio.to_thread(path.unlink, missing_ok=True)
            raise

    @app.get("/scans", response_model=list[ScanResult])
    def list_scans(
        bookmarked: bool = False,
        history: ScanHistoryStore = Depends(get_history),
    ):
        return history.bookmarked() if bookmarked else history.scans

    @app.get("/scans/stats", response_model=HistoryStats)
    def scan_stats(history: ScanHistoryStore = Depends(get_history)):
        return history.stats()

    @app.get("/scans/{scan_id}", response_model=ScanResult)
    def get_scan(scan_id: str, history: ScanHistoryStore = Depends(get_history)):
        return history.get(scan_id)

    @app.post("/scans/{scan_id}/bookmark", response_model=ScanResult)
    async def toggle_bookmark(scan_id: str, history: ScanHistoryStore = Depends(get_history)):
        return await history.toggle_bookmark(scan_id)

    @app.put("/scans/{scan_id}/notes", response_model=ScanResult)
    async def update_notes(
        scan_id: str,
        body: NotesRequest,
        history: ScanHistoryStore = Depends(get_history),
    ):
        return await history.update_notes(scan_id, body.notes)

    @app.delete("/scans/{scan_id}", status_code=204)
    async def delete_scan(scan_id: str, history: ScanHistoryStore = Depends(get_history)):
        await history.delete(scan_id)

    # ── Library ───────────────────────────────────────────────────────────────

    @app.get("/library", response_model=list[PlantProfile])
    def library(q: str = "", catalog: tuple[PlantProfile, ...] = Depends(get_catalog)):
        return search_catalog(q, catalog)

    @app.get("/library/{plant_id}", response_model=PlantProfile)
    def library_plant(plant_id: str, catalog: tuple[PlantProfile, ...] = Depends(get_catalog)):
        return get_plant(plant_id, catalog)


app = create_app()
