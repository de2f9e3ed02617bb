"""GeoJSON validation and centroid computation."""

from collections.abc import Iterator

from geojson_pydantic import Feature
from pydantic import ValidationError as PydanticValidationError

# Nesting depth of positions inside `coordinates` for each geometry type.
_POSITION_DEPTH = {
    "Point": 0,
    "MultiPoint": 1,
    "LineString": 1,
    "MultiLineString": 2,
    "Polygon": 2,
    "MultiPolygon": 3,
}

Point = tuple[float, float]


def validate(feature: object) -> list[str]:
    """Return GeoJSON structural errors for a Feature; empty when valid."""
    try:
        Feature.model_validate(feature)
    except PydanticValidationError as exc:
        return [_format_error(error) for error in exc.errors()]
    return []


def centroid_of(geometry: dict[str, object] | None) -> Point | None:
    """Return the unweighted mean of every position in the geometry.

    Polygon rings contribute each listed position, the closing one included.
    """
    if not geometry:
        return None
    count = 0
    sum_x = 0.0
    sum_y = 0.0
    for position in _positions(geometry):
        sum_x += float(position[0])
        sum_y += float(position[1])
        count += 1
    if count == 0:
        return None
    return sum_x / count, sum_y / count


def format_centroid(point: Point | None) -> str | None:
    """Render a centroid as a Postgres point literal such as `1,2`."""
    if point is None:
        return None
    return ",".join(_format_number(value) for value in point)


def _positions(geometry: dict[str, object]) -> Iterator[list[float]]:
    geometry_type = geometry.get("type")
    if geometry_type == "GeometryCollection":
        for member in geometry.get("geometries") or []:
            if isinstance(member, dict):
                yield from _positions(member)
        return
    depth = _POSITION_DEPTH.get(str(geometry_type))
    if depth is None:
        return
    yield from _flatten(geometry.get("coordinates"), depth)


def _flatten(coordinates: object, depth: int) -> Iterator[list[float]]:
    if not isinstance(coordinates, (list, tuple)):
        return
    if depth == 0:
        if len(coordinates) >= 2:  # noqa: PLR2004
            yield list(coordinates)
        return
    for child in coordinates:
        yield from _flatten(child, depth - 1)


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _format_error(error: dict[str, object]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = str(error.get("msg", "invalid GeoJSON"))
    return f"{location}: {message}" if location else message
