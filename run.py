#!/usr/bin/env python3
"""
KodBank Entry Point

Starts the FastAPI server with the configured host and port
(KODBANK_API_HOST / KODBANK_API_PORT, default 0.0.0.0:5000).
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from kodbank.api import run_server
from kodbank.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("🏦 Starting KodBank...")
    print("💰 Balances use fixed-point Decimal arithmetic")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server()
    except KeyboardInterrupt:
        print("\n👋 Shutting down KodBank...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
