"""
Resolution engine configuration — single source of truth for matching
tolerances, cache lifetimes, dialect defaults, auth and LLM routing.

Import from here in services and routes rather than hardcoding values.
"""
from __future__ import annotations

import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ── Library snapshot cache ─────────────────────────────────────────────────────

# Per-organization library snapshot lifetime (seconds)
CACHE_TTL_SECONDS: float = float(os.getenv("LIBRARY_CACHE_TTL_SECONDS", "300"))


# ── Matching ───────────────────────────────────────────────────────────────────

# Groove profiles match when width and depth are both within this many mm
GROOVE_TOLERANCE_MM: float = 0.5

# Inputs or entry names shorter than this never take part in name containment
NAME_MATCH_MIN_LENGTH: int = 3


# ── Confidence ─────────────────────────────────────────────────────────────────

CONFIDENCE_BY_STRATEGY: dict[str, float] = {
    "alias":      1.0,
    "parser":     1.0,
    "code":       1.0,
    "dimensions": 0.95,
    "tolerance":  0.85,
    "name":       0.85,
    "kind":       0.8,
    "keyword":    0.75,
    "ai":         0.5,
}

# Resolved operations below this confidence are flagged for review
REVIEW_CONFIDENCE_THRESHOLD: float = 0.75


# ── Dialect defaults ───────────────────────────────────────────────────────────

DEFAULT_USE_AI_FALLBACK: bool = _env_flag("DIALECT_DEFAULT_AI_FALLBACK", True)
DEFAULT_AUTO_LEARN: bool = _env_flag("DIALECT_DEFAULT_AUTO_LEARN", True)


# ── Learning events ────────────────────────────────────────────────────────────
# "inline" applies events in the request; "celery" queues them for the
# single-concurrency learning worker.
LEARNING_BACKEND: str = os.getenv("LEARNING_BACKEND", "inline").lower()
LEARNING_QUEUE: str = os.getenv("LEARNING_QUEUE", "learning")


# ── Auth ───────────────────────────────────────────────────────────────────────

JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "dev-secret-change-in-production")
JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
# Claim carrying the organization id
JWT_ORG_CLAIM: str = "org_id"


# ── LLM routing ────────────────────────────────────────────────────────────────

LLM_PRIMARY_MODEL: str = os.getenv("LLM_PRIMARY_MODEL", "groq/llama-3.1-70b-versatile")
LLM_FALLBACK_MODEL: str = os.getenv("LLM_FALLBACK_MODEL", "gemini/gemini-1.5-flash")
LLM_INTERPRETER_MAX_TOKENS: int = 600


# ── Celery / Redis ─────────────────────────────────────────────────────────────

REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")


# ── AI fallback ────────────────────────────────────────────────────────────────
# The LLM interpreter is wired in only when enabled; organizations still opt in
# per dialect through use_ai_fallback.
AI_INTERPRETER_ENABLED: bool = _env_flag("AI_INTERPRETER_ENABLED", False)
