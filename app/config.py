import os
from dotenv import load_dotenv

load_dotenv(dotenv_path=".env")

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

# Live timer clients
TIMER_SERVER_URL = os.getenv("TIMER_SERVER_URL", "http://localhost:8000")
CLOCK_RESYNC_INTERVAL_SECONDS = float(os.getenv("CLOCK_RESYNC_INTERVAL_SECONDS", "60"))
TIMER_TICK_INTERVAL_SECONDS = float(os.getenv("TIMER_TICK_INTERVAL_SECONDS", "0.1"))
RECONNECT_DELAY_SECONDS = float(os.getenv("RECONNECT_DELAY_SECONDS", "1"))
TIME_SOURCE_TIMEOUT_SECONDS = float(os.getenv("TIME_SOURCE_TIMEOUT_SECONDS", "5"))
