"""Callback definitions for session change notifications."""

from dataclasses import dataclass
from typing import Callable, Optional


@dataclass
class SessionCallbacks:
    """Callbacks the tab store calls to report changes to its tabs"""

    on_tab_created: Optional[Callable[[str], None]] = None
    on_tab_activated: Optional[Callable[[str], None]] = None
    on_tab_closed: Optional[Callable[[str], None]] = None
    on_tab_updated: Optional[Callable[[str], None]] = None
