from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from db_mongo import SESSIONS, ensure_indexes

from server.src.modules.authentification_helpers import find_user, get_auth_token, make_token, verify_password
from server.src.modules.logging_helpers import logger
from server.src.modules.wiki_api import router as wiki_router
from server.src.modules.wiki_config import validate_wiki_environment
from server.src.modules.wiki_errors import WikiError
from server.src.modules.wiki_repo import ensure_wiki_collections_and_indexes

# ---------- Lifespan (startup/shutdown) ----------
@asynccontextmanager
async def lifespan(app: FastAPI):
    report = validate_wiki_environment()
    for warning in report.warnings:
        logger.warning("wiki config: %s", warning)
    for error in report.errors:
        logger.error("wiki config: %s", error)
    ensure_indexes()
    ensure_wiki_collections_and_indexes()
    yield

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(WikiError)
async def wiki_error_handler(request: Request, exc: WikiError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)

app.include_router(wiki_router)

# ---------- Auth ----------
@app.post("/auth/login")
async def auth_login(request: Request):
    body = await request.json()
    username = (body.get("username") or "").strip()
    password = body.get("password") or ""
    if not username or not password:
        return JSONResponse({"status": "error", "message": "Missing username or password"}, status_code=400)

    user = find_user(username)
    if not user or not verify_password(password, user):
        logger.info("Login failed for user=%s", username)
        return JSONResponse({"status": "error", "message": "Login failed"}, status_code=401)

    token = make_token()
    role = user.get("role", "user")
    SESSIONS[token] = (username, role)
    logger.info("Login ok: %s (%s)", username, role)
    return {"status": "success", "token": token, "username": username, "role": role}

@app.get("/auth/me")
async def auth_me(request: Request):
    token = get_auth_token(request)
    if not token or token not in SESSIONS:
        return JSONResponse({"status": "error", "message": "Not authenticated"}, status_code=401)
    username, role = SESSIONS[token]
    return {"status": "success", "username": username, "role": role}

@app.post("/auth/logout")
async def auth_logout(request: Request):
    token = get_auth_token(request)
    if token:
        SESSIONS.pop(token, None)
    return {"status": "success"}

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)
