from __future__ import annotations

import json
import logging
import time
import zipfile
from pathlib import Path
from typing import Iterable, Optional


logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"


def _same_file(a: Path, b: Path) -> bool:
    try:
        return a.resolve() == b.resolve()
    except OSError:
        return False


def _collect(debug_dir: Path, log_file: Path, extra_paths: Iterable[str]) -> list[tuple[Path, str]]:
    """(source, archive name) pairs, log first, then the debug tree, then loose extras."""
    entries: list[tuple[Path, str]] = [(log_file, log_file.name)]
    if debug_dir.is_dir():
        for p in sorted(debug_dir.rglob("*")):
            if p.is_file():
                entries.append((p, (Path("debug") / p.relative_to(debug_dir)).as_posix()))
    for raw in extra_paths:
        p = Path(raw)
        entries.append((p, f"extra/{p.name}"))
    return entries


def create_debug_bundle(
    *,
    debug_dir: str,
    log_file: str,
    out_dir: str = "data",
    operation: str = "",
    extra_paths: Optional[Iterable[str]] = None,
    exclude_paths: Optional[Iterable[str]] = None,
) -> Path:
    """
    Zip the run log, the debug directory (step screenshots, HTML dumps) and any extra files into
    `out_dir/fanqie_debug[_<operation>]_<stamp>.zip`, with a `manifest.json` listing what went in.

    Anything under `exclude_paths` is left out even if it sits in the debug directory. The CLI passes
    the cookie file and the `.env` file here since they hold a live session and the account password.
    """
    out_root = Path(out_dir)
    out_root.mkdir(parents=True, exist_ok=True)

    op = (operation or "").strip().lower()
    stamp = time.strftime("%Y%m%d_%H%M%S")
    out_path = out_root / (f"fanqie_debug_{op}_{stamp}.zip" if op else f"fanqie_debug_{stamp}.zip")

    excluded = [Path(p) for p in exclude_paths or () if p]
    included: list[str] = []
    withheld: list[str] = []

    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as z:
        for source, arcname in _collect(Path(debug_dir), Path(log_file), extra_paths or ()):
            if not source.is_file():
                continue
            if any(_same_file(source, ex) for ex in excluded):
                logger.info("Leaving %s out of the debug bundle.", source)
                withheld.append(arcname)
                continue
            try:
                z.write(source, arcname=arcname)
            except OSError:
                # A screenshot can vanish between listing and zipping.
                logger.debug("Skipping unreadable debug file %s", source, exc_info=True)
                continue
            included.append(arcname)

        manifest = {
            "operation": op,
            "created_at": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
            "files": included,
            "withheld": withheld,
        }
        z.writestr(MANIFEST_NAME, json.dumps(manifest, ensure_ascii=False, indent=2))

    logger.debug("Debug bundle %s: %d file(s), %d withheld", out_path, len(included), len(withheld))
    return out_path
