import os

HOST = os.getenv("THREEBODY_HOST", "127.0.0.1")
PORT = int(os.getenv("THREEBODY_PORT", "8000"))

# Display refresh cadence of a locally stepped session
TICK_HZ = float(os.getenv("THREEBODY_TICK_HZ", "60"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("THREEBODY_CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("THREEBODY_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Configuration export keeps this many decimal places
EXPORT_PRECISION = 6

# Bodies per configuration accepted on import
BODY_COUNT = 3

# Upper bound on ticks computed by one stateless /api/step call
MAX_STEP_TICKS = 10000
