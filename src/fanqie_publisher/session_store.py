from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Union

from pydantic import ValidationError

from .errors import SessionStoreError
from .models import SessionCredential, dedupe_credentials


logger = logging.getLogger(__name__)


class SessionStore:
    """
    Flat JSON cookie file: `[ {name, value, domain, path, expires, httpOnly, secure, sameSite}, ... ]`.

    Runs are assumed to be sequential; there is no locking between concurrent writers.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def restore(self) -> list[SessionCredential]:
        """
        Return the stored cookies, or an empty list if the file is missing or unusable. Never raises.
        """
        if not self.path.exists():
            logger.debug("No session file at %s; starting without cookies.", self.path)
            return []

        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw.strip() else []
        except OSError as e:
            # Permissions or a directory in the way: the file may be fine, leave it where it is.
            logger.warning("Session file could not be read; ignoring it: %s (%s)", self.path, e)
            return []
        except ValueError as e:
            # Bad UTF-8 or bad JSON.
            logger.warning("Session file is not valid JSON; ignoring it: %s (%s)", self.path, e)
            self._quarantine()
            return []

        if not isinstance(data, list):
            logger.warning("Session file is not a JSON array; ignoring it: %s", self.path)
            self._quarantine()
            return []

        creds: list[SessionCredential] = []
        dropped = 0
        for item in data:
            if not isinstance(item, dict):
                dropped += 1
                continue
            try:
                creds.append(SessionCredential.model_validate(item))
            except ValidationError:
                dropped += 1
        if dropped:
            logger.warning("Dropped %d malformed cookie record(s) from %s", dropped, self.path)

        creds = dedupe_credentials(creds)
        logger.info("Restored %d cookie(s) from %s", len(creds), self.path)
        return creds

    def persist(self, credentials: Iterable[SessionCredential]) -> None:
        """
        Replace the stored set with `credentials`, atomically (write a temp file, then rename over).
        """
        creds = dedupe_credentials(credentials)
        payload = json.dumps([c.to_record() for c in creds], ensure_ascii=False, indent=2)

        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, self.path)
        except OSError as e:
            try:
                tmp.unlink()
            except OSError:
                pass
            raise SessionStoreError(f"Failed to write session file {self.path}: {e}") from e

        logger.info("Saved %d cookie(s) to %s", len(creds), self.path)

    def _quarantine(self) -> None:
        # Move the bad file aside so the next run doesn't trip over it again but it can still be inspected.
        try:
            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
            self.path.replace(self.path.with_name(f"{self.path.name}.corrupt-{stamp}"))
        except OSError:
            logger.debug("Failed to quarantine session file=%s", self.path, exc_info=True)
