"""Resource identifier parsing"""

from .errors import MalformedIdentifier
from .models import ResourceIdentifier

MIN_SEGMENTS = 8

# Segment positions: subscriptions/{id}/resourceGroups/{rg}/providers/{ns}/{type}/{name}
_MARKERS = {0: "subscriptions", 2: "resourceGroups", 4: "providers"}


def parse_resource_id(path: str) -> ResourceIdentifier:
    """Parse an Azure resource path into a ResourceIdentifier.

    Markers are matched exactly; provider and type keep their case. Segments past
    the resource name are kept as child segments. Raises MalformedIdentifier for
    anything shorter or misordered.
    """
    if not isinstance(path, str):
        raise MalformedIdentifier(path, "Resource identifier must be a string")

    text = path.strip()
    if not text.startswith("/"):
        raise MalformedIdentifier(path, "Resource identifier must start with '/'")

    segments = text.strip("/").split("/")
    if len(segments) < MIN_SEGMENTS:
        raise MalformedIdentifier(
            path, f"Expected at least {MIN_SEGMENTS} segments, found {len(segments)}"
        )

    if any(not segment for segment in segments):
        raise MalformedIdentifier(path, "Resource identifier contains an empty segment")

    for position, marker in _MARKERS.items():
        if segments[position] != marker:
            raise MalformedIdentifier(
                path, f"Expected '{marker}' at segment {position + 1}, found '{segments[position]}'"
            )

    return ResourceIdentifier(
        subscription_id=segments[1],
        resource_group=segments[3],
        provider=segments[5],
        resource_type=segments[6],
        resource_name=segments[7],
        child_segments=tuple(segments[8:]),
    )
