"""Utility functions shared by the board model, solver and metrics."""

from typing import Dict, List, Sequence, Tuple

Pos = Tuple[int, int]

# Module-level cache: (rows, cols) -> {(r, c): ((nr, nc), ...), ...}
_NEIGHBORHOODS_CACHE: Dict[Tuple[int, int], Dict[Pos, Tuple[Pos, ...]]] = {}


def get_neighborhoods(rows: int, cols: int) -> Dict[Pos, Tuple[Pos, ...]]:
    """
    Precompute and cache 8-connected neighbor coordinates for every cell in a grid.

    Args:
        rows: Grid height (number of rows). Must be positive.
        cols: Grid width (number of columns). Must be positive.

    Returns:
        Mapping from each cell (row, col) to a tuple of valid neighboring
        coordinates (nr, nc) under 8-connectivity, in row-major order.

    Raises:
        ValueError: If rows or cols is non-positive.
    """
    if rows <= 0 or cols <= 0:
        raise ValueError("rows and cols must be positive.")

    key = (rows, cols)
    cached = _NEIGHBORHOODS_CACHE.get(key)
    if cached is not None:
        return cached

    neighborhoods: Dict[Pos, Tuple[Pos, ...]] = {}
    for r in range(rows):
        for c in range(cols):
            nbrs: List[Pos] = []
            for dr in (-1, 0, 1):
                for dc in (-1, 0, 1):
                    if dr == 0 and dc == 0:
                        continue
                    nr, nc = r + dr, c + dc
                    if 0 <= nr < rows and 0 <= nc < cols:
                        nbrs.append((nr, nc))
            neighborhoods[(r, c)] = tuple(nbrs)

    _NEIGHBORHOODS_CACHE[key] = neighborhoods
    return neighborhoods


def format_grid(grid: Sequence[Sequence[str]], *, show_coords: bool = True) -> str:
    """
    Render a grid of one-character cell symbols as a multi-line string.

    Args:
        grid: Rows of already-converted cell symbols.
        show_coords: If True, include row/column labels and a header.

    Returns:
        The formatted text grid.
    """
    lines: List[str] = []
    width = len(grid[0]) if grid else 0
    if show_coords:
        lines.append("   " + " ".join(f"{c:2d}" for c in range(width)))
        lines.append("   " + "-" * (3 * width - 1))

    for r, row in enumerate(grid):
        cells = " ".join(f" {s}" for s in row)
        lines.append(f"{r:2d} |" + cells if show_coords else cells)

    return "\n".join(lines)
