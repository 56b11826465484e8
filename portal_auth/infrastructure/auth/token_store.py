"""Where the backend session token lives between requests."""
import json
import logging
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class TokenStore(ABC):
    """Write-only from the session machine's point of view; it never parses tokens."""

    @abstractmethod
    def save(self, token: str) -> None:
        pass

    @abstractmethod
    def load(self) -> Optional[str]:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryTokenStore(TokenStore):
    def __init__(self):
        self._token: Optional[str] = None

    def save(self, token: str) -> None:
        self._token = token

    def load(self) -> Optional[str]:
        return self._token

    def clear(self) -> None:
        self._token = None


class FileTokenStore(TokenStore):
    """Keeps one token per key in a shared JSON file."""

    def __init__(self, path: str, key: str = "default"):
        self.path = Path(path)
        self.key = key

    def _load_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"⚠️ Ignoring unreadable token file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save_all(self, tokens: Dict[str, str]) -> None:
        self.path.parent.mkdir(exist_ok=True, parents=True)
        with tempfile.NamedTemporaryFile(mode="w", dir=self.path.parent, delete=False, encoding="utf-8") as tf:
            json.dump(tokens, tf)
            temp_path = Path(tf.name)
        try:
            # Atomic move/replace
            shutil.move(str(temp_path), str(self.path))
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def save(self, token: str) -> None:
        tokens = self._load_all()
        tokens[self.key] = token
        self._save_all(tokens)

    def load(self) -> Optional[str]:
        return self._load_all().get(self.key)

    def clear(self) -> None:
        tokens = self._load_all()
        if tokens.pop(self.key, None) is not None:
            self._save_all(tokens)
