"""WSGI entry point: starts the monitoring loops and exposes the health API."""
import sys
import os
import atexit
import logging
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))

from config import load_config
from utils.logger import setup_logging
from monitor.factory import build_system
from web.app import create_app

logger = logging.getLogger("opsmonitor.wsgi")

config = load_config(os.environ.get("OPS_MONITOR_CONFIG") or None)
setup_logging(config.get("logging", {}).get("level", "INFO"), config.get("logging", {}).get("file") or None)

system = build_system(config)
system.start()
atexit.register(system.stop)

app = create_app(system)
