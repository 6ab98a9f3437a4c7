"""Bar-graph rendering of sampler amplitudes."""

from __future__ import annotations

from collections.abc import Sequence

from textual.widgets import Static

BLOCKS = " ▁▂▃▄▅▆▇█"


def render_bars(amplitudes: Sequence[float], height: int) -> str:
    """Render amplitudes in [0, 1] as `height` rows of block characters."""
    rows = max(1, height)
    levels = len(BLOCKS) - 1
    lines: list[str] = []
    for row in range(rows - 1, -1, -1):
        line = []
        for value in amplitudes:
            scaled = max(0.0, min(1.0, value)) * rows * levels
            cell = int(round(scaled - row * levels))
            line.append(BLOCKS[max(0, min(levels, cell))])
        lines.append("".join(line))
    return "\n".join(lines)


class SpectrumPane(Static):
    """Redrawn on each `SpectrumUpdated`; keeps the last frame while paused."""

    def show(self, amplitudes: Sequence[float]) -> None:
        height = max(1, self.size.height - 2)
        self.update(render_bars(amplitudes, height))
