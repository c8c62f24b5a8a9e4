#!/usr/bin/env python3
"""
Roast API Setup and Run Script

This script checks the environment and starts the Xiaohongshu Roast API
server.
"""

import os
import sys
import subprocess
from pathlib import Path


def setup_environment():
    """Set up environment variables and configuration"""
    print("Setting up Roast API environment...")

    api_key = os.getenv("DEEPSEEK_API_KEY")
    if api_key:
        print(f"DeepSeek API key configured: {api_key[:5]}...")
    else:
        print("Warning: DEEPSEEK_API_KEY is not set, roast generation will fail")

    db_url = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./roast_api.db")
    os.environ["DATABASE_URL"] = db_url

    print(f"Database URL: {db_url}")

    os.environ.setdefault("PYTHONPATH", str(Path.cwd()))

    return True


def check_dependencies():
    """Check if required dependencies are installed"""
    print("Checking dependencies...")

    try:
        import fastapi
        import uvicorn
        import aiohttp
        import sqlmodel
        import pydantic_settings

        print("Core dependencies found")
        return True
    except ImportError as e:
        print(f"Missing dependency: {e}")
        print("Installing dependencies...")

        try:
            subprocess.check_call([sys.executable, "-m", "pip", "install", "-e", "."])
            print("Dependencies installed successfully")
            return True
        except subprocess.CalledProcessError:
            print("Failed to install dependencies")
            return False


def start_server(port: int):
    """Start the Roast API server"""
    print("Starting Xiaohongshu Roast API server...")
    print(f"Server will be available at: http://localhost:{port}")
    print(f"Health check endpoint: http://localhost:{port}/healthcheck")
    print(f"Diagnostics endpoint: http://localhost:{port}/api/test")
    print("Press Ctrl+C to stop the server")
    print("-" * 50)

    try:
        import uvicorn

        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=port,
            reload=True,
            log_level="info",
            access_log=True,
        )
    except KeyboardInterrupt:
        print("\nServer stopped by user")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)


def main():
    """Main setup and run function"""
    print("Xiaohongshu Roast API - Setup and Run")
    print("=" * 40)

    script_dir = Path(__file__).parent
    os.chdir(script_dir)
    print(f"Working directory: {script_dir}")

    if not setup_environment():
        print("Failed to setup environment")
        sys.exit(1)

    if not check_dependencies():
        print("Failed to check/install dependencies")
        sys.exit(1)

    start_server(int(os.getenv("PORT", "8002")))


if __name__ == "__main__":
    main()
