#!/usr/bin/env python3
"""
FollowTrain API Setup and Run Script

Fills in development defaults for the environment, creates the database
tables and starts the API server.
"""

import asyncio
import os
import sys
from pathlib import Path


def setup_environment():
    """Set up environment variables and configuration"""
    print("Setting up FollowTrain API environment...")

    os.environ.setdefault("ENVIRONMENT", "development")
    os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./followtrain.db")
    print(f"Database URL: {os.environ['DATABASE_URL']}")

    for name in ("INSTAGRAM_ACCESS_TOKEN", "TWITTER_BEARER_TOKEN", "LINKEDIN_ACCESS_TOKEN"):
        state = "configured" if os.getenv(name) else "not set, fallback profiles only"
        print(f"{name}: {state}")


def init_database():
    """Create tables before the first request arrives"""
    from core.database import create_db_and_tables

    asyncio.run(create_db_and_tables())
    print("Database tables ready")


def start_server():
    """Start the FollowTrain API server"""
    from core.config import get_settings

    settings = get_settings()
    print("Starting FollowTrain API server...")
    print(f"Health check endpoint: http://localhost:{settings.port}/api/health")
    print("Press Ctrl+C to stop the server")
    print("-" * 50)

    try:
        import uvicorn

        uvicorn.run(
            "main:app",
            host=settings.host,
            port=settings.port,
            reload=settings.environment == "development",
            log_level="info",
            access_log=True,
        )
    except KeyboardInterrupt:
        print("\nServer stopped by user")


def main():
    """Main setup and run function"""
    print("FollowTrain API - Setup and Run")
    print("=" * 40)

    script_dir = Path(__file__).parent
    os.chdir(script_dir)
    sys.path.insert(0, str(script_dir))

    setup_environment()
    init_database()
    start_server()


if __name__ == "__main__":
    main()
