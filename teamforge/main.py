# ---------------------------------------------------------
# teamforge/main.py
# TeamForge - team formation backend
#
# Run: uvicorn teamforge.main:app --reload (from repo root)
#
# - FastAPI + SQLAlchemy (SQLite locally, Postgres when DATABASE_URL is set)
# - /api/projects                         : create / list projects
# - /api/projects/mine                    : projects created by the caller
# - /api/projects/{id}                    : project page (role, actions, team)
# - /api/projects/{id}/join               : request to join
# - /api/projects/{id}/requests/{rid}/decision : owner accepts / rejects
# - /api/me/memberships                   : caller's membership requests
# - /api/profiles/me                      : caller's display profile
# ---------------------------------------------------------

from __future__ import annotations

from typing import Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from teamforge.config import CORS_ORIGINS, IS_PROD
from teamforge.migrate import run_migrations
from teamforge.routes_projects import router as projects_router


# ---------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------
app = FastAPI(title="TeamForge Backend", version="0.1")

# CORS configuration from config module
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(projects_router)


@app.on_event("startup")
def on_startup() -> None:
    run_migrations()


# ---------------------------------------------------------
# Routes
# ---------------------------------------------------------
@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}
