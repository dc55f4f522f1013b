"""Plain-text line charts drawn with box-drawing characters."""

from __future__ import annotations

import math
from typing import Iterable, List

_PRECISION = 2


def _round_half_away(value: float) -> int:
    if value >= 0:
        return int(math.floor(value + 0.5))
    return -int(math.floor(-value + 0.5))


def _interpolate(values: List[float], count: int) -> List[float]:
    """Resample a series to `count` points by linear interpolation."""
    if count == 1:
        return [values[0]]
    if len(values) == 1:
        return values * count
    factor = (len(values) - 1) / (count - 1)
    out = [values[0]]
    for i in range(1, count - 1):
        spring = i * factor
        before = math.floor(spring)
        after = math.ceil(spring)
        at = spring - before
        out.append(values[before] + (values[after] - values[before]) * at)
    out.append(values[-1])
    return out


def plot(
    data: Iterable[float], height: int = 0, width: int = 0, caption: str = ""
) -> str:
    """Draw a series as a line chart with a labelled vertical axis.

    A positive width resamples the series to that many points; a positive
    height sets the number of rows the value range is spread over. A caption,
    when given, is placed on its own line below the chart.
    """
    values = [float(v) for v in data]
    if not values:
        raise ValueError("cannot plot an empty series")
    if not all(math.isfinite(v) for v in values):
        raise ValueError("cannot plot non-finite values")
    if width > 0:
        values = _interpolate(values, width)

    low, high = min(values), max(values)
    interval = high - low
    if height <= 0:
        height = max(int(interval), 1)
    ratio = height / interval if interval > 0 else 1.0

    low2 = _round_half_away(low * ratio)
    high2 = _round_half_away(high * ratio)
    rows = high2 - low2
    levels = [_round_half_away(v * ratio) - low2 for v in values]

    labels = []
    for row in range(rows + 1):
        magnitude = high - row * interval / rows if rows else high
        if magnitude == 0:
            magnitude = 0.0
        labels.append(f"{magnitude:.{_PRECISION}f}")
    label_width = max(len(label) for label in labels)

    columns = len(values) - 1
    grid = [[" "] * columns for _ in range(rows + 1)]
    for x, (y0, y1) in enumerate(zip(levels, levels[1:])):
        if y0 == y1:
            grid[rows - y0][x] = "─"
            continue
        if y0 > y1:
            grid[rows - y1][x] = "╰"
            grid[rows - y0][x] = "╮"
        else:
            grid[rows - y1][x] = "╭"
            grid[rows - y0][x] = "╯"
        for y in range(min(y0, y1) + 1, max(y0, y1)):
            grid[rows - y][x] = "│"

    start_row = rows - levels[0]
    lines = []
    for row in range(rows + 1):
        axis = "┼" if row == start_row else "┤"
        text = f"{labels[row]:>{label_width}} {axis}" + "".join(grid[row])
        lines.append(text.rstrip())

    if caption:
        pad = label_width + 2 + max((columns - len(caption)) // 2, 0)
        lines.append(" " * pad + caption)
    return "\n".join(lines)