"""Drawdown tracking for a bot's equity curve — pure math, no I/O.

Keeps the equity peak and the worst peak-to-trough drawdown seen so far,
so a bot's ``peak_equity`` / ``max_drawdown`` can be restored from storage
and carried forward after every fill.
"""


class DrawdownTracker:
    """Tracks equity peaks and the running maximum drawdown.

    Args:
        peak_equity: Highest equity recorded so far (the bot's initial
                     balance for a fresh bot).
        max_drawdown_pct: Worst drawdown recorded so far, in percent.
    """

    def __init__(
        self,
        peak_equity: float,
        max_drawdown_pct: float = 0.0,
    ) -> None:
        if peak_equity <= 0:
            raise ValueError(
                f"peak_equity must be positive, got {peak_equity}"
            )
        self._peak_equity: float = peak_equity
        self._current_equity: float = peak_equity
        self._max_drawdown_pct: float = max_drawdown_pct

    # ── Mutation ─────────────────────────────────────────────────────────

    def update(self, equity: float) -> float:
        """Record the latest equity and return the current drawdown (%).

        Raises the peak when *equity* exceeds it, and the recorded maximum
        drawdown when the current one is deeper.
        """
        self._current_equity = equity
        if equity > self._peak_equity:
            self._peak_equity = equity
        drawdown = self.drawdown_pct
        if drawdown > self._max_drawdown_pct:
            self._max_drawdown_pct = drawdown
        return drawdown

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def peak_equity(self) -> float:
        return self._peak_equity

    @property
    def current_equity(self) -> float:
        return self._current_equity

    @property
    def drawdown_pct(self) -> float:
        """Current drawdown as a percentage of peak equity."""
        return (
            (self._peak_equity - self._current_equity) / self._peak_equity
        ) * 100.0

    @property
    def max_drawdown_pct(self) -> float:
        """Deepest drawdown recorded, in percent."""
        return self._max_drawdown_pct
