import os
import shlex
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

def get_path(filename):
    return os.path.join(BASE_DIR, filename)

def env_flag(name, default=False):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("true", "1", "t", "yes")

# ==========================================
# CONFIGURATION & CONSTANTS
# ==========================================

# File/Directory Paths
LOGS_DIR = get_path("Logs")
CONFIG_FILE = get_path("config.json")
LEVELS_FILE = get_path("levels.json")

# --- SECRET LOADING ---
BOT_TOKEN = os.getenv("BOT_TOKEN") or os.getenv("DISCORD_TOKEN")

# --- IDENTITY ---
ADMIN_ID = 0
if os.getenv("ADMIN_ID"): ADMIN_ID = int(os.getenv("ADMIN_ID"))

BRAND_NAME = os.getenv("BRAND_NAME") or "DarkMC"
BRAND_COLOR = "#00E5E5"
ERROR_COLOR = "#ff5555"

# --- MINECRAFT SERVER ---
SERVER_IP = os.getenv("SERVER_IP") or "Not set"

# LOCAL_SERVER: spawn the real java process. Otherwise lifecycle commands are simulated.
LOCAL_SERVER = env_flag("LOCAL_SERVER")
# Only honoured with LOCAL_SERVER. Off unless explicitly enabled.
AUTO_RESTART = env_flag("AUTO_RESTART")

JAVA_CMD = os.getenv("JAVA_CMD") or "java"
JAVA_ARGS = ["-Xmx8G", "-Xms8G", "-jar", "server.jar", "nogui"]
if os.getenv("JAVA_ARGS"): JAVA_ARGS = shlex.split(os.getenv("JAVA_ARGS"))
SERVER_DIR = os.getenv("SERVER_DIR") or None

# Minecraft prints "Done (12.3s)!" or the help hint once it is accepting players
READY_PATTERN = r'Done \(|For help, type "help"'
if os.getenv("READY_PATTERN"): READY_PATTERN = os.getenv("READY_PATTERN")
STOP_COMMAND = os.getenv("STOP_COMMAND") or "stop"

# --- LIFECYCLE TIMINGS (seconds) ---
START_FALLBACK_SECONDS = 60.0
STOP_KILL_SECONDS = 15.0
RESTART_SAFETY_SECONDS = 20.0
RESTART_DELAY_SECONDS = 3.0
CRASH_BACKOFF_SECONDS = 5.0
SIM_START_SECONDS = 10.0
SIM_STOP_SECONDS = 8.0

if os.getenv("START_FALLBACK_SECONDS"): START_FALLBACK_SECONDS = float(os.getenv("START_FALLBACK_SECONDS"))
if os.getenv("STOP_KILL_SECONDS"): STOP_KILL_SECONDS = float(os.getenv("STOP_KILL_SECONDS"))
if os.getenv("CRASH_BACKOFF_SECONDS"): CRASH_BACKOFF_SECONDS = float(os.getenv("CRASH_BACKOFF_SECONDS"))

# --- CONSOLE RELAY ---
CONSOLE_FLUSH_CHARS = 1500
CONSOLE_DEBOUNCE_SECONDS = 2.0
CONSOLE_CHUNK_CHARS = 1900

# --- ANNOUNCEMENTS ---
ANNOUNCE_TTL_SECONDS = 10 * 60
ANNOUNCE_TITLE_MAX = 256
ANNOUNCE_DESCRIPTION_MAX = 4000
ANNOUNCE_IMAGE_URL_MAX = 1000
DEFAULT_ANNOUNCE_TITLE = "Announcement"
DEFAULT_ANNOUNCE_DESCRIPTION = "No description provided."

# --- LEVELING ---
XP_GAIN_MIN = 5
XP_GAIN_MAX = 15
LEVEL_SAVE_DEBOUNCE_SECONDS = 10.0
LEADERBOARD_SIZE = 10

# --- KEEP-ALIVE ---
PORT = 3000
if os.getenv("PORT"): PORT = int(os.getenv("PORT"))
KEEPALIVE_LOG_SECONDS = 5 * 60

# Ensure directories exist
os.makedirs(LOGS_DIR, exist_ok=True)

if not BOT_TOKEN:
    print("❌ CONFIG ERROR: BOT_TOKEN is missing. Check .env")
    # We don't exit here to allow importing config for inspection, but main will fail.

if not ADMIN_ID:
    print("⚠️ Warning: ADMIN_ID is not set. Admin commands will be refused.")
