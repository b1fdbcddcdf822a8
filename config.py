import logging
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ============================================================
# ENVIRONMENT
# ============================================================

load_dotenv()

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# ============================================================
# CALENDAR
# ============================================================
START_YEAR = int(os.environ.get("PORTFOLIO_START_YEAR", "2026"))
END_YEAR = int(os.environ.get("PORTFOLIO_END_YEAR", str(START_YEAR)))

# ============================================================
# STORAGE
# ============================================================
LEDGER_FILE = os.environ.get("LEDGER_FILE", "ledger_state.json")
CLIENTS_FILE = os.environ.get("CLIENTS_FILE", "clients.json")
DEFAULT_CLIENT_COUNT = int(os.environ.get("DEFAULT_CLIENT_COUNT", "100"))

FIRESTORE_PROJECT_ID = os.environ.get("FIRESTORE_PROJECT_ID")
FIRESTORE_API_KEY = os.environ.get("FIRESTORE_API_KEY")
FIRESTORE_DOC_PATH = os.environ.get("FIRESTORE_DOC_PATH", "portfolio/state")

if FIRESTORE_PROJECT_ID and FIRESTORE_API_KEY:
    PERSISTENCE_BACKEND = "firestore"
else:
    logger.warning("Firestore credentials not found. Using local file storage (%s).", LEDGER_FILE)
    PERSISTENCE_BACKEND = "local"

# Seconds of inactivity before a pending edit is written to storage
AUTOSAVE_DEBOUNCE_SECONDS = float(os.environ.get("AUTOSAVE_DEBOUNCE_SECONDS", "1.5"))

# ============================================================
# RISK PARAMETERS
# ============================================================
RISK_FREE_RATE = float(os.environ.get("RISK_FREE_RATE", "0.02"))  # annual, for Sharpe/Sortino
TRADING_DAYS = 252

# ============================================================
# GLOBAL COLOR PALETTE
# ============================================================
GLOBAL_PALETTE = [
    "#4C6A92",  # steel blue
    "#8C9CB1",  # soft gray-blue
    "#C0504D",  # muted red
    "#D79E9C",  # soft red-gray
    "#9BBB59",  # olive green
    "#C5D6A4",  # light olive
    "#8064A2",  # muted purple
    "#B1A0C7",  # lavender gray
    "#4F81BD",  # corporate blue
    "#A5B5CF",  # cool gray-blue
    "#F2C200",  # muted gold (accent)
    "#D6B656",  # soft gold-gray
]
