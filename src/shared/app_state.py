"""
Application state: per-session state for the running app.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class AppState:
    """State of the single editing session, rebuilt from the session cookie."""
    data_root: Path
    current_invoice_id: Optional[str] = None
    currency_symbol: str = "₦"
