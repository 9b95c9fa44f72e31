import logging
import os
from typing import List, Optional
from dotenv import load_dotenv

# Load .env - try multiple paths
load_dotenv()  # Current directory
load_dotenv(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".env"))

logger = logging.getLogger(__name__)

# Basic environment config
OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL: Optional[str] = os.getenv("OPENAI_BASE_URL") or None
OPENAI_TIMEOUT: float = float(os.getenv("OPENAI_TIMEOUT", "120"))

OPENAI_MODEL_ANALYSIS: str = os.getenv("OPENAI_MODEL_ANALYSIS", "gpt-4o")
OPENAI_MODEL_SEARCH: str = os.getenv("OPENAI_MODEL_SEARCH", "gpt-4o-mini")
OPENAI_MODEL_IMAGE: str = os.getenv("OPENAI_MODEL_IMAGE", "gpt-image-1")

# Hazard analysis
ANALYSIS_TEMPERATURE: float = float(os.getenv("ANALYSIS_TEMPERATURE", "0.2"))
ANALYSIS_MAX_WORKERS: int = int(os.getenv("ANALYSIS_MAX_WORKERS", "4"))

SQLITE_PATH: str = os.getenv("K3_SQLITE_PATH", "data/k3_reports.db")
REPORTS_STORE_KEY: str = os.getenv("K3_REPORTS_KEY", "k3-reports")
MAX_TASKS: int = int(os.getenv("K3_MAX_TASKS", "10"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS: List[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

SAFETY_DISCLAIMER: str = (
    "Hasil identifikasi bahaya ini bersifat pendukung. Selalu verifikasi dengan ahli K3, "
    "peraturan perundangan yang berlaku, dan prosedur kerja aman perusahaan sebelum pekerjaan dimulai."
)

LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

if OPENAI_API_KEY:
    logger.info("[CONFIG] API key loaded: %s...", OPENAI_API_KEY[:7])
else:
    logger.warning("[CONFIG] OPENAI_API_KEY not found!")
