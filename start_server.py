#!/usr/bin/env python3
"""
Startup script for the TeamFlow backend
This script starts the FastAPI server with proper configuration
"""

import logging
import os

import uvicorn
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

def main():
    # Load environment variables
    load_dotenv()

    # Server configuration
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("RELOAD", "true").lower() == "true"

    logging.basicConfig(level=logging.INFO)
    logger.info(f"Starting TeamFlow backend on {host}:{port} (reload={reload})")

    # Start the server
    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )

if __name__ == "__main__":
    main()
