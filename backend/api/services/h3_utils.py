"""
H3 helpers used across the project.

Thin wrappers over python-h3 (v4 API) so the rest of the code never touches
the library directly and fakes are easy to swap in.
"""

from typing import Any, List, Optional, Tuple

try:
    import h3  # python-h3
except Exception as e:
    raise RuntimeError("python-h3 is required. Install with: pip install h3") from e


# Resolution every aggregate and proximity lookup is normalized to
REFERENCE_RESOLUTION = 9


def to_cell(value: Any) -> str:
    """
    Accept an H3 index as hex string, '0x'-prefixed string or integer
    (facility imports store it as a bigint) and return the canonical string.
    Raises ValueError when the value is not a valid cell.
    """
    if value is None:
        raise ValueError("H3 index is required")
    if isinstance(value, bool):
        raise ValueError(f"Invalid H3 index: {value!r}")
    try:
        if isinstance(value, int):
            cell = h3.int_to_str(value)
        else:
            s = str(value).strip().lower()
            if s.startswith("0x"):
                s = s[2:]
            # decimal strings come from bigint columns exported as text
            cell = h3.int_to_str(int(s)) if s.isdigit() and not h3.is_valid_cell(s) else s
    except (OverflowError, TypeError) as e:
        raise ValueError(f"Invalid H3 index: {value!r}") from e
    if not h3.is_valid_cell(cell):
        raise ValueError(f"Invalid H3 index: {value!r}")
    return cell


def is_valid(value: Any) -> bool:
    try:
        to_cell(value)
        return True
    except (ValueError, TypeError):
        return False


def point_to_hex(lat: float, lng: float, resolution: int = REFERENCE_RESOLUTION) -> str:
    """Return the H3 hex ID for (lat, lng) at the given resolution."""
    return h3.latlng_to_cell(float(lat), float(lng), int(resolution))


def hex_to_center(hex_id: str) -> Tuple[float, float]:
    """Return (lat, lng) of the center of an H3 cell."""
    return h3.cell_to_latlng(hex_id)


def resolution_of(hex_id: str) -> int:
    return h3.get_resolution(hex_id)


def parent_at(hex_id: Any, resolution: int) -> str:
    """
    Ancestor of the cell at `resolution`. Cells already at or coarser than
    the target are returned unchanged, since H3 has no parent for them.
    """
    cell = to_cell(hex_id)
    if h3.get_resolution(cell) <= resolution:
        return cell
    return h3.cell_to_parent(cell, resolution)


def grid_distance(a: str, b: str) -> int:
    """Number of hops between two cells of the same resolution."""
    return h3.grid_distance(a, b)


def grid_disk(center: str, k: int) -> List[str]:
    """All cells within k hops of center (center included)."""
    return list(h3.grid_disk(center, int(k)))


def cell_area_km2(hex_id: str) -> Optional[float]:
    """Area of the cell in km^2, or None when the id is not a valid cell."""
    if not h3.is_valid_cell(hex_id):
        return None
    return h3.cell_area(hex_id, unit="km^2")


def children_at(hex_id: str, resolution: int) -> List[str]:
    """Descendants of the cell at a finer resolution (the cell itself if not finer)."""
    if resolution <= h3.get_resolution(hex_id):
        return [hex_id]
    return list(h3.cell_to_children(hex_id, resolution))
