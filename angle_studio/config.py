import os
from dotenv import load_dotenv

load_dotenv()

# Model and credentials - loaded from .env (the API key itself is read by FileCredentialStore)
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-3-pro-image-preview")
CREDENTIALS_FILE = os.getenv(
    "ANGLE_STUDIO_CREDENTIALS_FILE",
    os.path.join(os.path.expanduser("~"), ".angle_studio", "credentials.json"),
)

# Generation defaults
DEFAULT_RESOLUTION = os.getenv("ANGLE_STUDIO_RESOLUTION", "1K")
MAX_RETRIES = int(os.getenv("ANGLE_STUDIO_MAX_RETRIES", "3"))  # transient 429/503 only
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
