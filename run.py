#!/usr/bin/env python3
"""
Approval Quorum Engine Entry Point

Starts the FastAPI server with the approval quorum engine.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from approval_quorum.api import run_server
from approval_quorum.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Approval Quorum Engine...")
    print(f"Storage: {config.database_url}")
    print(f"Vote retry budget: {config.max_vote_attempts} attempts")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server()
    except KeyboardInterrupt:
        print("\nShutting down Approval Quorum Engine...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
