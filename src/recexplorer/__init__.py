"""
recexplorer - Search and bulk-trash Zoom phone, meeting and contact center recordings
"""

try:
    from importlib.metadata import version

    __version__ = version("recexplorer")
except Exception:
    # Fallback for editable/uninstalled checkouts
    __version__ = "0.dev0"
__author__ = "recexplorer"
__description__ = "CLI tool to search Zoom recordings across sources and delete them in bulk"

from .aggregator import Aggregator, SearchRequest, SearchResult
from .bulk_delete import BulkDeleteOrchestrator, DeleteSummary
from .config import Config
from .exceptions import ConfigError, RecExplorerError
from .logger import setup_logging
from .models import UnifiedRecording, record_key
from .output import OutputFormatter
from .pool import run_bounded
from .selection import RecordBrowser, SelectionState
from .zoom_client import ZoomClient

__all__ = [
    "Aggregator",
    "SearchRequest",
    "SearchResult",
    "BulkDeleteOrchestrator",
    "DeleteSummary",
    "Config",
    "ConfigError",
    "RecExplorerError",
    "UnifiedRecording",
    "record_key",
    "RecordBrowser",
    "SelectionState",
    "run_bounded",
    "ZoomClient",
    "OutputFormatter",
    "setup_logging",
    "__version__",
]
