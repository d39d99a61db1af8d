#!/usr/bin/env python3
"""
Incident Desk - Development Server Runner

Sets up the Python path and starts the server.
"""

import os
import sys

# Add the 'src' directory to Python path so imports work correctly
project_root = os.path.dirname(os.path.abspath(__file__))
src_path = os.path.join(project_root, 'src')

if src_path not in sys.path:
    sys.path.insert(0, src_path)


if __name__ == "__main__":
    import uvicorn

    print("Starting Incident Desk on http://127.0.0.1:8000")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "web.app:create_app",
        factory=True,
        host="127.0.0.1",
        port=8000,
        reload=True,
        reload_dirs=[src_path],
        log_level="info"
    )
