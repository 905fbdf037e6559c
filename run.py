#!/usr/bin/env python3
"""
Mock Bank Entry Point

Starts the FastAPI server (port 8090 by default; see MOCKBANK_* settings).
"""

import sys

from mockbank.api import run_server
from mockbank.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("🏦 Starting Mock Bank...")
    print(f"💾 Storage: {config.storage_url}")
    print("💰 All balance arithmetic uses Decimal precision")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(config, debug="--debug" in sys.argv[1:])
    except KeyboardInterrupt:
        print("\n👋 Shutting down Mock Bank...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
