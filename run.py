"""
Run the AssetMX Express API server on port 3005.
Usage: python3 run.py   (from the project root)
"""
import uvicorn
from dotenv import load_dotenv

# Export .env into the process so reload workers see the same registry and database settings
load_dotenv()

from config import settings  # noqa: E402
from logging_config import configure_logging  # noqa: E402

if __name__ == "__main__":
    configure_logging()
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=3005,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
