"""Persisted access token, kept outside the response cache.

The token file is the provider's durable fallback for the last token that
worked. It holds nothing but the raw token string; its presence or absence
is meaningful on its own:

* written after a successful ``login`` exchange,
* deleted as soon as the API answers 401,
* read when neither memory nor configuration supplies a token.

Writes are atomic (temp file + ``os.replace``) with ``0o600`` permissions,
and every mutation is serialised through a lock.

See Also:
    :class:`~wunderbox.provider.Provider` -- the only writer.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from wunderbox.config import atomic_write

logger = logging.getLogger(__name__)


class TokenFile:
    """Read/write the token file for a single provider namespace.

    Args:
        directory: Folder holding the file (typically the temp dir).
        namespace: Provider type identifier; the file is named
            ``.<namespace>_token``.

    Example::

        tokens = TokenFile(Path("/tmp"), "wunderbox_provider_Provider")
        tokens.save("abc")
        assert tokens.load() == "abc"
    """

    def __init__(self, directory: Path, namespace: str) -> None:
        self._path = Path(directory) / f".{namespace}_token"
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """The filesystem path to the token file."""
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> Optional[str]:
        """Return the stored token, or ``None`` if the file is absent or empty."""
        if not self._path.is_file():
            return None
        try:
            token = self._path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            logger.warning("Cannot read token file %s: %s", self._path, exc)
            return None
        return token or None

    def save(self, token: str) -> None:
        """Persist *token* atomically with ``0o600`` permissions.

        Raises:
            OSError: If the file cannot be written.
        """
        with self._lock:
            atomic_write(self._path, token, mode=0o600)
        logger.debug("Stored token at %s", self._path)

    def clear(self) -> None:
        """Delete the token file. No-op when it does not exist."""
        with self._lock:
            try:
                self._path.unlink()
            except FileNotFoundError:
                return
        logger.debug("Removed token file %s", self._path)
