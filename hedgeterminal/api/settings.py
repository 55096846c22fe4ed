import os
from typing import List

# Comma-separated list of allowed origins for CORS. Falls back to Vite dev server.
_origins_env = os.getenv("HT_FRONTEND_ORIGINS")
if _origins_env:
    CORS_ORIGINS: List[str] = [origin.strip() for origin in _origins_env.split(",") if origin.strip()]
else:
    CORS_ORIGINS = ["http://localhost:5173"]
