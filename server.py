# server.py: FastAPI host for the AzureBox sign-in flow
# Each browser session owns one AuthSession (server-side, keyed by a small sid
# in the cookie). Every page render feeds the current query string into it and
# ships the collected browser scripts back with the page.

import os
import secrets
import threading
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from urllib.parse import urlsplit

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.middleware.sessions import SessionMiddleware
from starlette.status import HTTP_302_FOUND

from azurebox.auth import AuthSession, IdentityProvider
from azurebox.browser import ScriptBuffer
from azurebox.config import Settings, get_settings
from azurebox.errors import RemoteAuthFailure
from azurebox.graph import ProfileClient
from azurebox.logger import logger
from azurebox.models import AuthState, ProviderConfig

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "azurebox", "templates")

ProviderFactory = Callable[[ProviderConfig], IdentityProvider]


# -------------------------------
# Server-side session store (in-memory)
# -------------------------------

@dataclass
class SessionEntry:
    auth: AuthSession
    browser: ScriptBuffer
    last_seen: float = 0.0


class SessionRegistry:
    """
    One AuthSession per browser session. Nothing survives a restart; entries
    idle for longer than ``max_age`` seconds are dropped on the next lookup.
    """

    def __init__(self, factory: Callable[[], SessionEntry], *,
                 max_age: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._factory = factory
        self._max_age = max_age
        self._clock = clock
        self._entries: Dict[str, SessionEntry] = {}
        self._lock = threading.Lock()

    def _purge(self, now: float) -> None:
        stale = [sid for sid, e in self._entries.items() if now - e.last_seen > self._max_age]
        for sid in stale:
            del self._entries[sid]
        if stale:
            logger.info("Dropped %s idle session(s)", len(stale))

    def get_or_create(self, sid: str) -> SessionEntry:
        with self._lock:
            now = self._clock()
            self._purge(now)
            entry = self._entries.get(sid)
            if entry is None:
                entry = self._factory()
                self._entries[sid] = entry
            entry.last_seen = now
            return entry

    def drop(self, sid: str) -> None:
        with self._lock:
            self._entries.pop(sid, None)

    def authenticated_count(self) -> int:
        with self._lock:
            return sum(1 for e in self._entries.values() if e.auth.is_authenticated)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def ensure_sid(session: dict) -> str:
    sid = session.get("sid")
    if not sid:
        sid = uuid.uuid4().hex
        session["sid"] = sid
    return sid


# -------------------------------
# App
# -------------------------------

def create_app(settings: Optional[Settings] = None,
               *,
               provider_factory: Optional[ProviderFactory] = None,
               profile_client: Optional[ProfileClient] = None) -> FastAPI:
    settings = settings or get_settings()
    if not settings.is_configured:
        logger.warning("Azure settings incomplete: %s", settings.as_safe_dict())

    profiles = profile_client or ProfileClient(timeout=settings.HTTP_TIMEOUT)

    def new_session() -> SessionEntry:
        browser = ScriptBuffer()
        provider = provider_factory(settings.provider_config()) if provider_factory else None
        auth = AuthSession(
            settings.TENANT_ID,
            settings.CLIENT_ID,
            settings.CLIENT_SECRET,
            settings.REDIRECT_URI,
            browser=browser,
            provider=provider,
            scopes=settings.SCOPE,
            timeout=settings.HTTP_TIMEOUT,
        )
        return SessionEntry(auth=auth, browser=browser)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if profile_client is None:
            profiles.close()

    app = FastAPI(lifespan=lifespan)
    app.state.sessions = SessionRegistry(new_session, max_age=settings.SESSION_TIMEOUT)
    app.state.settings = settings

    secret_key = settings.SECRET_KEY
    if not secret_key:
        logger.warning("SECRET_KEY not set, using a random key (sessions end on restart)")
        secret_key = secrets.token_urlsafe(32)

    app.add_middleware(
        SessionMiddleware,
        secret_key=secret_key,
        session_cookie="azurebox_session",
        same_site="lax",  # Lax reicht für Top-Level-Redirects vom Provider
        https_only=settings.REDIRECT_URI.lower().startswith("https://"),
        max_age=settings.SESSION_TIMEOUT,
        path="/",
    )

    templates = Jinja2Templates(directory=TEMPLATE_DIR)

    # -------------------------------
    # PAGE (render cycle)
    # -------------------------------

    def render_page(request: Request):
        sid = ensure_sid(request.session)
        entry = request.app.state.sessions.get_or_create(sid)

        user = None
        error = None
        try:
            token = entry.auth.authenticate(request.url.query)
        except RemoteAuthFailure:
            logger.exception("Login fehlgeschlagen (sid=%s)", sid)
            token = None
            error = "Authentication failed"
        except Exception:
            logger.exception("Unexpected error during sign-in (sid=%s)", sid)
            token = None
            # Redirect-Phase: für den Nutzer wie ein normaler Erstbesuch
            if entry.auth.state is not AuthState.unauthenticated:
                error = "Authentication failed"

        if token:
            try:
                user = profiles.fetch_current_user(token, settings.PROFILE_FIELDS)
            except Exception:
                logger.exception("Graph-Call fehlgeschlagen (sid=%s)", sid)
            if user is None:
                entry.browser.console_log("Could not retrieve user data!")

        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "user": user,
                "error": error,
                "state": entry.auth.state.value,
                "scripts": entry.browser.drain(),
            },
        )

    page_paths = ["/"]
    callback_path = urlsplit(settings.REDIRECT_URI).path or "/"
    if callback_path not in page_paths:
        page_paths.append(callback_path)
    for path in page_paths:
        app.add_api_route(path, render_page, methods=["GET"], response_class=HTMLResponse)

    # -------------------------------
    # LOGOUT & HEALTH
    # -------------------------------

    @app.get("/logout")
    def logout(request: Request):
        sid = request.session.get("sid")
        if sid:
            request.app.state.sessions.drop(sid)
        request.session.clear()
        logger.info("Session closed: %s", sid)
        return RedirectResponse("/", status_code=HTTP_302_FOUND)

    @app.get("/health")
    def health(request: Request):
        sessions = request.app.state.sessions
        return {
            "status": "ok",
            "sessions": len(sessions),
            "authenticated_sessions": sessions.authenticated_count(),
        }

    return app
