"""Refresh progress tracking.

Tracks a refresh through its phases with percentage-based progress so a
caller polling get_refresh_status() can render a progress bar.
"""

from typing import Any, Dict, Optional


class SyncProgress:
    """Track library refresh progress with phase-based percentage tracking."""

    # Phase percentage allocations: (start_pct, end_pct)
    PHASE_RANGES = {
        'idle': (0, 0),
        'fetching': (0, 10),
        'resolving': (10, 40),
        'storing': (40, 60),
        'covers': (60, 75),
        'artworks': (75, 99),
        'complete': (100, 100),
        'error': (100, 100),
        'cancelled': (100, 100)
    }

    def __init__(self):
        self.total_games = 0
        self.stored_games = 0
        self.status = "idle"
        self.message: Optional[str] = None
        self.error: Optional[str] = None

    def set_phase(self, status: str, message: Optional[str] = None) -> None:
        if status not in self.PHASE_RANGES:
            raise ValueError(f"unknown refresh phase: {status}")
        self.status = status
        self.message = message

    def reset(self) -> None:
        self.total_games = 0
        self.stored_games = 0
        self.error = None
        self.set_phase('idle')

    def _calculate_progress(self) -> int:
        """Calculate progress based on current phase and its percentage allocation."""
        start_pct, end_pct = self.PHASE_RANGES.get(self.status, (0, 0))

        # Storing advances per inserted game
        if self.status == 'storing' and self.total_games > 0:
            sub_progress = self.stored_games / self.total_games
            return int(start_pct + (end_pct - start_pct) * sub_progress)

        return start_pct

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'status': self.status,
            'message': self.message,
            'total_games': self.total_games,
            'stored_games': self.stored_games,
            'progress_percent': self._calculate_progress(),
            'error': self.error,
        }
