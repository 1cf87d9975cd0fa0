"""
REST API for the roster backend.
Thin wrappers around the repositories. The owner id always comes from the verified token,
never from a request body.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Generator

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from backend import config
from backend.auth import create_access_token, decode_token, hash_password, verify_password
from backend.errors import InfrastructureError, NotFoundError, ValidationError
from backend.persistence import (
    get_connection,
    UserRepository,
    TeamRepository,
    PlayerRepository,
)
from backend.services import initialize_app

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

_MAX_PASSWORD_BYTES = 72


def _truncate_password(s: str) -> str:
    """Ensure password is at most 72 UTF-8 bytes."""
    b = s.encode("utf-8")
    if len(b) <= _MAX_PASSWORD_BYTES:
        return s
    return b[:_MAX_PASSWORD_BYTES].decode("utf-8", errors="replace")


@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("Starting roster API...")
    initialize_app(get_connection)
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="Roster API",
    description="Per-user teams and players, including unassigned (global) players",
    version="1.0.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("%s %s", request.method, request.url.path)
    return await call_next(request)


# ---------- Error mapping ----------


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies, params and paths get the same 400 envelope as domain validation."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    reason = first.get("msg", "Invalid request")
    message = f"Invalid {field}: {reason}" if field else reason
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(NotFoundError)
async def _not_found_error(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"success": False, "message": str(exc)})


@app.exception_handler(InfrastructureError)
async def _infrastructure_error(request: Request, exc: InfrastructureError) -> JSONResponse:
    logger.error("Infrastructure error on %s %s: %s", request.method, request.url.path, exc)
    status = 503 if exc.retryable else 500
    return JSONResponse(status_code=status, content={"success": False, "message": "Internal server error"})


@app.exception_handler(HTTPException)
async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.detail})


# ---------- Request models ----------

security = HTTPBearer(auto_error=False)


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    username: str | None = None
    password: str | None = None


class TeamRequest(BaseModel):
    name: str | None = None
    logo: str | None = None
    color: str | None = None
    description: str | None = None


class PlayerRequest(BaseModel):
    name: str | None = None
    position: str | None = None
    jersey_number: int | None = None
    team_id: int | None = Field(None, description="Omit or null for a global (unassigned) player")


class AssignRequest(BaseModel):
    team_id: int | None = None


def _current_user_id(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> int:
    """User id from the bearer token: 401 when absent, 403 when invalid or expired."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Access denied. No token provided.")
    user_id = decode_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(status_code=403, detail="Invalid or expired token.")
    return user_id


def _listing(items: list) -> dict[str, Any]:
    return {"success": True, "count": len(items), "data": [i.to_dict() for i in items]}


# ---------- Auth ----------


@app.post("/api/auth/signup", status_code=201)
def signup(req: SignupRequest) -> dict[str, Any]:
    """Create an account. Passwords hashed, never stored plain."""
    with db_conn() as conn:
        user = UserRepository().create(conn, req.username, hash_password(_truncate_password(req.password)))
        token = create_access_token(user.id, user.username)
        return {"success": True, "token": token, "user": {"id": user.id, "username": user.username}}


@app.post("/api/auth/login")
def login(req: LoginRequest) -> dict[str, Any]:
    """Login. Returns JWT token."""
    if not req.username or not req.password:
        raise HTTPException(status_code=400, detail="Username and password are required.")
    with db_conn() as conn:
        user = UserRepository().get_by_username(conn, req.username)
        if user is None or not verify_password(_truncate_password(req.password), user.password_hash or ""):
            raise HTTPException(status_code=401, detail="Invalid username or password.")
        token = create_access_token(user.id, user.username)
        return {
            "success": True,
            "message": "Login successful.",
            "token": token,
            "user": {"id": user.id, "username": user.username},
        }


@app.post("/api/auth/logout")
def logout(user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    # Tokens are stateless; the client discards its copy.
    return {"success": True, "message": "Logout successful."}


@app.get("/api/auth/verify")
def verify(user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        user = UserRepository().get(conn, user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found.")
        return {"success": True, "user": {"id": user.id, "username": user.username}}


# ---------- Teams ----------


@app.get("/api/teams")
def list_teams(user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    """All of the caller's teams with player counts, by name."""
    with db_conn() as conn:
        return _listing(TeamRepository().list_by_owner_with_player_count(conn, user_id))


@app.get("/api/teams/{team_id}")
def get_team(team_id: int, user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        team = TeamRepository().get_by_id_with_player_count(conn, team_id, user_id)
        return {"success": True, "data": team.to_dict()}


@app.get("/api/teams/{team_id}/hierarchy")
def get_team_hierarchy(team_id: int, user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    """Team with its full roster."""
    with db_conn() as conn:
        hierarchy = TeamRepository().get_hierarchy(conn, team_id, user_id)
        return {"success": True, "data": hierarchy.to_dict()}


@app.post("/api/teams", status_code=201)
def create_team(req: TeamRequest, user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        team = TeamRepository().create(conn, req.name, req.logo, req.color, req.description, user_id)
        return {"success": True, "message": "Team created successfully.", "data": team.to_dict()}


@app.put("/api/teams/{team_id}")
def update_team(team_id: int, req: TeamRequest, user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        repo = TeamRepository()
        repo.update(conn, team_id, req.name, req.logo, req.color, req.description, user_id)
        team = repo.get_by_id(conn, team_id, user_id)
        return {"success": True, "message": "Team updated successfully.", "data": team.to_dict()}


@app.delete("/api/teams/{team_id}")
def delete_team(team_id: int, user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    """Delete a team; its players become global players."""
    with db_conn() as conn:
        TeamRepository().delete(conn, team_id, user_id)
        return {"success": True, "message": "Team deleted; its players are now unassigned."}


# ---------- Players ----------


@app.get("/api/players")
def list_players(user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    """All of the caller's players: global first, then by team name, then by name."""
    with db_conn() as conn:
        return _listing(PlayerRepository().list_by_owner(conn, user_id))


@app.get("/api/players/global")
def list_global_players(user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        return _listing(PlayerRepository().list_global_by_owner(conn, user_id))


@app.get("/api/players/search")
def search_players(
    q: str | None = Query(None, description="Substring of player or team name"),
    user_id: int = Depends(_current_user_id),
) -> dict[str, Any]:
    with db_conn() as conn:
        return _listing(PlayerRepository().search(conn, q, user_id))


@app.get("/api/players/{player_id}")
def get_player(player_id: int, user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    """Single player with team info. Global players are listed via /api/players/global."""
    with db_conn() as conn:
        player = PlayerRepository().get_by_id(conn, player_id, user_id)
        return {"success": True, "data": player.to_dict()}


@app.post("/api/players", status_code=201)
def create_player(req: PlayerRequest, user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        player = PlayerRepository().create(
            conn, req.name, req.position, req.jersey_number, req.team_id, user_id
        )
        message = "Player created successfully." if player.team_id else "Global player created successfully."
        return {"success": True, "message": message, "data": player.to_dict()}


@app.put("/api/players/{player_id}")
def update_player(player_id: int, req: PlayerRequest, user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        repo = PlayerRepository()
        repo.update(conn, player_id, req.name, req.position, req.jersey_number, req.team_id, user_id)
        player = repo.get_owned(conn, player_id, user_id)
        return {"success": True, "message": "Player updated successfully.", "data": player.to_dict()}


@app.put("/api/players/{player_id}/assign")
def assign_player(player_id: int, req: AssignRequest, user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        repo = PlayerRepository()
        repo.assign_to_team(conn, player_id, req.team_id, user_id)
        player = repo.get_owned(conn, player_id, user_id)
        return {"success": True, "message": "Player assigned to team successfully.", "data": player.to_dict()}


@app.put("/api/players/{player_id}/unassign")
def unassign_player(player_id: int, user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        PlayerRepository().unassign_from_team(conn, player_id, user_id)
        return {"success": True, "message": "Player removed from team successfully."}


@app.delete("/api/players/{player_id}")
def delete_player(player_id: int, user_id: int = Depends(_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        PlayerRepository().delete(conn, player_id, user_id)
        return {"success": True, "message": "Player deleted successfully."}


# ---------- Health ----------


@app.get("/api/health")
def health() -> dict[str, Any]:
    return {
        "success": True,
        "message": "Roster API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
