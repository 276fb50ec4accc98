"""
Entry point for the Database Manager Backend
"""

import logging

from dotenv import load_dotenv

# Load environment variables from .env file before settings are read
load_dotenv()

from dbmanager.app import app  # noqa: E402
from dbmanager.config.settings import PORT  # noqa: E402

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Database Manager Backend on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
