"""Profile registry: canonical profile URL -> bundle type tag."""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Union

from .config import DEFAULT_PROFILE_MAP

logger = logging.getLogger(__name__)


class ProfileRegistry(Mapping[str, str]):
    """Read-only table of document profiles and the bundle types they declare.

    Instances are immutable. Build one explicitly and hand it to the
    classifier; tests substitute their own table via ``with_overrides``.
    """

    def __init__(self, profiles: Optional[Mapping[str, str]] = None) -> None:
        source = DEFAULT_PROFILE_MAP if profiles is None else profiles
        self._profiles: Mapping[str, str] = MappingProxyType(dict(source))

    @classmethod
    def default(cls) -> "ProfileRegistry":
        return cls(DEFAULT_PROFILE_MAP)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ProfileRegistry":
        """Load a registry from a JSON object of ``{profile_url: bundle_type}``.

        Raises:
            ValueError: If the file does not hold a flat string mapping
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise ValueError(f"Profile registry {path} must be a JSON object of strings")

        logger.info(f"Loaded {len(data)} profile mappings from {path}")
        return cls(data)

    def with_overrides(self, overrides: Mapping[str, str]) -> "ProfileRegistry":
        """Return a new registry with ``overrides`` layered on top of this one."""
        merged: Dict[str, str] = dict(self._profiles)
        merged.update(overrides)
        return ProfileRegistry(merged)

    def lookup(self, profile: Optional[str]) -> Optional[str]:
        """Bundle type for a profile URL.

        Tries the URL as given, then without a ``|version`` suffix.
        """
        if not profile:
            return None
        tag = self._profiles.get(profile)
        if tag is None and "|" in profile:
            tag = self._profiles.get(profile.split("|", 1)[0])
        return tag

    def __getitem__(self, profile: str) -> str:
        return self._profiles[profile]

    def __iter__(self) -> Iterator[str]:
        return iter(self._profiles)

    def __len__(self) -> int:
        return len(self._profiles)

    def __repr__(self) -> str:
        return f"ProfileRegistry({len(self)} profiles)"
