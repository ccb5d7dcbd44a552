#!/usr/bin/env python3
"""
Run the MES Sync MCP server from a source checkout without installing it.

Usage:
    # stdio mode (MCP clients, MCP inspector)
    python run_server.py

    # SSE mode, e.g. for a shop-floor workstation reaching a shared server
    python run_server.py --transport sse --host 0.0.0.0 --port 8080
"""

import sys
from pathlib import Path

# Make src/ importable for an uninstalled checkout
sys.path.insert(0, str(Path(__file__).parent / "src"))

from mes_sync_mcp.server import main

if __name__ == "__main__":
    main()
