"""
Writes a JSON snapshot of the matched tracks of a run, for diagnostics.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from tunefetch.models.track import MatchedTrack

log = logging.getLogger(__name__)


def write_snapshot(path: Path, matched_tracks: Sequence[MatchedTrack]) -> Path:
    """
    Serializes `matched_tracks` to `path` and returns the path written.

    Raises:
        OSError: If the file cannot be written.
    """
    path = Path(path)
    document = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "tracks": [track.to_dict() for track in matched_tracks],
    }
    if path.parent != Path("."):
        path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2, ensure_ascii=False)
        f.write("\n")
    log.info(f"Saved snapshot of {len(matched_tracks)} track(s) to [dim]{path}[/dim]")
    return path
