import os

from utils.settings import settings

# ═══════════════════════════════════════════════════════════════
# PROVIDER (OpenAI-kompatibler Endpoint: OpenAI, Ollama /v1, Gateways)
# ═══════════════════════════════════════════════════════════════
AI_PROVIDER = os.getenv("AI_PROVIDER", "openai")
AI_BASE_URL = os.getenv(
    "AI_BASE_URL",
    "http://localhost:11434/v1" if AI_PROVIDER == "ollama" else "https://api.openai.com/v1",
)
AI_API_KEY = os.getenv("OPENAI_API_KEY", "ollama" if AI_PROVIDER == "ollama" else "")
PROVIDER_TIMEOUT = float(os.getenv("PROVIDER_TIMEOUT", "120"))

# Max tool rounds per run before the provider forces a final answer
MAX_TOOL_ROUNDS = int(os.getenv("MAX_TOOL_ROUNDS", "30"))

# ═══════════════════════════════════════════════════════════════
# MODEL KONFIGURATION
# ═══════════════════════════════════════════════════════════════

# Planning phase: reasoning model, falls back to GUIDANCE_MODEL when
# reasoning summaries are unavailable
REASONING_MODEL = os.getenv("REASONING_MODEL", "o4-mini")

# Guidance phase: large model, never gets reasoning settings
GUIDANCE_MODEL = os.getenv("GUIDANCE_MODEL", "gpt-4o")

# Execution phase: small model, the only phase streamed live
EXECUTION_MODEL = os.getenv("EXECUTION_MODEL", "gpt-4o-mini")

# Model name prefixes that accept reasoning effort/summary settings
REASONING_MODEL_PREFIXES = tuple(
    p.strip() for p in os.getenv("REASONING_MODEL_PREFIXES", "o1,o3,o4,gpt-5").split(",") if p.strip()
)

# ═══════════════════════════════════════════════════════════════
# LOOPS (reasoning + thinking)
# ═══════════════════════════════════════════════════════════════
REASONING_EFFORT = os.getenv("REASONING_EFFORT", "medium")      # low | medium | high
REASONING_SUMMARY = os.getenv("REASONING_SUMMARY", "auto")      # auto | concise | detailed
THINKING_ENABLED = os.getenv("THINKING_ENABLED", "false").lower() == "true"
THINKING_VERBOSITY = os.getenv("THINKING_VERBOSITY", "medium")  # low | medium | high

# ═══════════════════════════════════════════════════════════════
# CONTEXT / HISTORY
# ═══════════════════════════════════════════════════════════════

# How many of the latest working-history messages go into each run
HISTORY_WINDOW = int(os.getenv("HISTORY_WINDOW", "8"))

# Messages handed to the memory collaborator after a completed turn
MEMORIZE_WINDOW = int(os.getenv("MEMORIZE_WINDOW", "6"))

# Event log ring buffer size
EVENT_LOG_LIMIT = int(os.getenv("EVENT_LOG_LIMIT", "200"))

# ═══════════════════════════════════════════════════════════════
# MEMORY
# ═══════════════════════════════════════════════════════════════
MEMORY_ENABLED = os.getenv("MEMORY_ENABLED", "false").lower() == "true"
MEMORY_URL = os.getenv("MEMORY_URL", "http://localhost:8081")
MEMORY_USER_ID = os.getenv("MEMORY_USER_ID", "local_user")
MEMORY_TIMEOUT = float(os.getenv("MEMORY_TIMEOUT", "15"))

# ═══════════════════════════════════════════════════════════════
# TOOLS / APPROVALS
# ═══════════════════════════════════════════════════════════════

# Comma separated tool names that always need human approval
# (in addition to tools that declare needs_approval themselves)
TOOLS_REQUIRING_APPROVAL = frozenset(
    t.strip() for t in os.getenv("TOOLS_REQUIRING_APPROVAL", "").split(",") if t.strip()
)

TODO_FILE = os.getenv("TODO_FILE", ".gsio-todos.json")

# ═══════════════════════════════════════════════════════════════
# LINGER (autonomer Trigger)
# ═══════════════════════════════════════════════════════════════
LINGER_ENABLED = os.getenv("LINGER_ENABLED", "false").lower() == "true"
LINGER_BEHAVIOR = os.getenv("LINGER_BEHAVIOR", "")
LINGER_MIN_INTERVAL_SEC = float(os.getenv("LINGER_MIN_INTERVAL_SEC", "20"))

# Rolling ambient summary through the execution model instead of keeping the
# last heard text verbatim
AMBIENT_LLM_SUMMARY = os.getenv("AMBIENT_LLM_SUMMARY", "false").lower() == "true"

# ═══════════════════════════════════════════════════════════════
# ADMIN API
# ═══════════════════════════════════════════════════════════════
ADMIN_API_HOST = os.getenv("ADMIN_API_HOST", "127.0.0.1")
ADMIN_API_PORT = int(os.getenv("ADMIN_API_PORT", "8300"))
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*")

# ═══════════════════════════════════════════════════════════════
# LOGGING
# ═══════════════════════════════════════════════════════════════
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
# Empty = stderr. The terminal REPL draws on stdout.
LOG_FILE = os.getenv("LOG_FILE", "")


# ═══════════════════════════════════════════════════════════════
# RUNTIME GETTERS (persisted override > env > default)
# ═══════════════════════════════════════════════════════════════

def get_model(key: str) -> str:
    """Resolve REASONING_MODEL / GUIDANCE_MODEL / EXECUTION_MODEL."""
    defaults = {
        "REASONING_MODEL": REASONING_MODEL,
        "GUIDANCE_MODEL": GUIDANCE_MODEL,
        "EXECUTION_MODEL": EXECUTION_MODEL,
    }
    value = settings.get(key, "")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return defaults[key]


def get_reasoning_settings() -> dict:
    return {
        "effort": settings.get("REASONING_EFFORT", REASONING_EFFORT),
        "summary": settings.get("REASONING_SUMMARY", REASONING_SUMMARY),
    }


def get_thinking_settings() -> dict:
    return {
        "enabled": bool(settings.get("THINKING_ENABLED", THINKING_ENABLED)),
        "verbosity": settings.get("THINKING_VERBOSITY", THINKING_VERBOSITY),
    }


def get_linger_config():
    """Read on every linger tick so UI/admin changes apply immediately."""
    from core.models import LingerConfig

    raw = settings.get("linger", {}) or {}
    return LingerConfig(
        enabled=raw.get("enabled", LINGER_ENABLED),
        behavior=raw.get("behavior", LINGER_BEHAVIOR),
        min_interval_sec=raw.get("min_interval_sec", LINGER_MIN_INTERVAL_SEC),
    )


def set_linger_config(**changes) -> None:
    current = get_linger_config().model_dump()
    current.update({k: v for k, v in changes.items() if v is not None})
    settings.set("linger", current)
