#!/usr/bin/env python3
"""Run the UpdateBot Push API server.

UPDATEBOT_API_HOST and UPDATEBOT_API_PORT choose where to listen;
UPDATEBOT_API_RELOAD=1 restarts the server when sources change.
"""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Add src to path
src_dir = Path(__file__).parent / "src"
sys.path.insert(0, str(src_dir))

import uvicorn
from api.app import create_app

app = create_app()

if __name__ == "__main__":
    reload = os.environ.get("UPDATEBOT_API_RELOAD", "0") == "1"
    uvicorn.run(
        "server:app",
        host=os.environ.get("UPDATEBOT_API_HOST", "127.0.0.1"),
        port=int(os.environ.get("UPDATEBOT_API_PORT", "8000")),
        reload=reload,
        reload_dirs=[str(src_dir)] if reload else None,
    )
