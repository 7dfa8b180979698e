from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lykr.config import settings
from lykr.middleware.security import (
    SecurityHeadersMiddleware,
    HTTPSRedirectMiddleware,
    SecureCookieMiddleware,
)
from lykr.middleware.exceptions import register_exception_handlers
from lykr.routers import auth, campaigns, health, leads, transcribe, voice_agent, wizard
from lykr.services.scheduler import lifespan

app = FastAPI(
    title="Lykr",
    description="Onboarding, authentication and voice interview backend",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (outermost first) ─────────────────────────────
# Security headers (first - applies to all responses)
app.add_middleware(SecurityHeadersMiddleware)

# HTTPS redirect (production only)
app.add_middleware(HTTPSRedirectMiddleware, force_https=False)

# Secure cookies (production only)
app.add_middleware(SecureCookieMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])

# Require a session
app.include_router(wizard.router, prefix="/api/wizard", tags=["wizard"])
app.include_router(transcribe.router, prefix="/api/transcribe", tags=["transcribe"])
app.include_router(voice_agent.router, prefix="/api/voice-agent", tags=["voice-agent"])
app.include_router(campaigns.router, prefix="/api/campaigns", tags=["campaigns"])
app.include_router(leads.router, prefix="/api", tags=["leads"])
