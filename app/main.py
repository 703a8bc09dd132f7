import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

# --- ADMIN ROUTES ---
from app.api.v1.admin import dashboard as admin_dashboard
from app.api.v1.admin import user as admin_user

# ===== IMPORT ROUTERS =====
from app.api.v1.shares import auth, materials, modules, poins, quizzes, schedules

# --- USER ROUTES ---
from app.api.v1.user import notes as user_notes
from app.api.v1.user import profile as user_profile
from app.api.v1.user import progress as user_progress
from app.api.v1.user import quiz as user_quiz
from app.core.errors import register_exception_handlers
from app.core.settings import settings
from app.db.store import StoreFactory

# --- MIDDLEWARE ---
from app.middleware.request_context import RequestContextMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):

    # ================================
    # 1) LOGGING
    # ================================
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL.upper())

    # ================================
    # 2) SUPABASE CLIENTS
    # ================================
    app.state.store = await StoreFactory.create()
    logger.info("🌐 Supabase clients started")

    # App chạy
    try:
        yield
    finally:
        await app.state.store.aclose()
        logger.info("🛑 Posyandu API stopped")


# ===== APP CONFIG =====
app = FastAPI(
    title="Posyandu API",
    description="Backend học tập Posyandu: module, materi, poin, kuis, tiến độ",
    version="0.1.0",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


app.add_middleware(RequestContextMiddleware)
register_exception_handlers(app)
prefix = "/api/v1"

# ===== REGISTER ROUTERS =====

# --- Share ---
app.include_router(auth.router, prefix=prefix)
app.include_router(modules.router, prefix=prefix)
# /materials/poins/... phải đăng ký trước /materials/{id}
app.include_router(poins.router, prefix=prefix)
app.include_router(materials.router, prefix=prefix)
app.include_router(quizzes.router, prefix=prefix)
app.include_router(schedules.router, prefix=prefix)

# --- USER ROUTES ---
app.include_router(user_profile.router, prefix=prefix)
app.include_router(user_progress.router, prefix=prefix)
app.include_router(user_quiz.router, prefix=prefix)
app.include_router(user_notes.router, prefix=prefix)

# --- ADMIN ROUTES ---
app.include_router(admin_user.router, prefix=prefix)
app.include_router(admin_dashboard.router, prefix=prefix)


# ===== ROOT =====
@app.get("/")
async def hello_world():
    return {"message": "Posyandu API is running"}


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
