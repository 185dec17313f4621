#!/usr/bin/env python3
"""
Account Ledger Service Entry Point

Starts the FastAPI server on the configured host and port (3001 by default).
"""

import sys

from account_ledger.api import run_server
from account_ledger.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Account Ledger Service...")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}{config.docs_url}")
    print()
    
    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug=config.api_reload
        )
    except KeyboardInterrupt:
        print("\nShutting down Account Ledger Service...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
