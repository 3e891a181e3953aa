#!/usr/bin/env python3
"""
Run script for the lecturer claims server.

Usage:
    python run_server.py

Settings are read from the environment or a .env file (see src/utils/config.py).
"""

import logging
import os
import sys

# Configure logging early, before any other imports that might use it
logging.getLogger("websockets").setLevel(logging.WARNING)
logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("python_multipart.multipart").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def main():
    """Run the claims server."""
    import uvicorn
    from src.utils.config import settings

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    print("=" * 60)
    print("Lecturer Claims Workflow")
    print("=" * 60)
    print(f"Server: http://{settings.host}:{settings.port}")
    print(f"Uploads: {settings.upload_dir}")
    print(f"Demo data: {'on' if settings.seed_demo_data else 'off'}")
    print("=" * 60)
    print()
    print("Endpoints:")
    print(f"  - Health: http://{settings.host}:{settings.port}/health")
    print(f"  - Submit claim: POST http://{settings.host}:{settings.port}/claims")
    print(f"  - Review queue: http://{settings.host}:{settings.port}/claims?filter=pending")
    print(f"  - Notifications: WS ws://{settings.host}:{settings.port}/ws")
    print()

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()
