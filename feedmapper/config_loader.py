"""
Configuration loading and management.
Loads YAML config files for global settings and mapping profiles.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import yaml

from .errors import ProfileError
from .models import CsvProfile, FileType, MappingProfile
from .utils import merge_dicts
from .vocabulary import CONTAINER_TAG_VOCABULARY, ITEM_TAG_VOCABULARY


logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    'log_level': 'INFO',
    'json_logs': True,
    'log_dir': None,
    'output_dir': './exports',
    'csv_delimiter': ',',
    'ai': {
        'provider': 'local',
        'model': 'gpt-4o-mini',
        'api_key_env': 'OPENAI_API_KEY',
        'timeout': 30,
    },
    'vocabulary': {
        'item_tags': list(ITEM_TAG_VOCABULARY),
        'container_tags': list(CONTAINER_TAG_VOCABULARY),
    },
}


class ConfigLoader:
    """Loads and caches configuration from YAML files."""

    def __init__(self, config_dir: Path):
        self.config_dir = Path(config_dir)
        self._cache = {}

    def _load_yaml(self, filepath: Path) -> Dict[str, Any]:
        """Load a YAML file and cache it."""
        if filepath in self._cache:
            return self._cache[filepath]

        if not filepath.exists():
            raise FileNotFoundError(f"Config file not found: {filepath}")

        logger.info(f"Loading config: {filepath}")
        with open(filepath, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ProfileError(f"Expected a mapping at the top of {filepath}")

        self._cache[filepath] = data
        return data

    def load_global_config(self) -> Dict[str, Any]:
        """Load global configuration, filling absent keys from DEFAULT_CONFIG."""
        path = self.config_dir / "global_config.yaml"
        if not path.exists():
            logger.debug(f"No global config at {path}, using defaults")
            return merge_dicts(DEFAULT_CONFIG, {})
        return merge_dicts(DEFAULT_CONFIG, self._load_yaml(path))

    def load_vocabulary(self) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        """Item and container tag vocabularies (configured or default)."""
        vocabulary = self.load_global_config()['vocabulary']
        return tuple(vocabulary['item_tags']), tuple(vocabulary['container_tags'])

    def resolve_profile_path(self, name_or_path: Union[str, Path]) -> Path:
        """A profile name maps to profiles/<name>.yaml; an existing file path is used as-is."""
        candidate = Path(name_or_path)
        if candidate.suffix in ('.yaml', '.yml') and candidate.exists():
            return candidate
        return self.config_dir / "profiles" / f"{name_or_path}.yaml"

    def load_profile(self, name_or_path: Union[str, Path]) -> Union[MappingProfile, CsvProfile]:
        """
        Load a mapping profile.

        Args:
            name_or_path: Profile name under profiles/ or a YAML file path

        Returns:
            MappingProfile for XML profiles, CsvProfile for CSV profiles

        Raises:
            FileNotFoundError: If the profile file does not exist
            ProfileError: If the profile is invalid
        """
        path = self.resolve_profile_path(name_or_path)
        data = self._load_yaml(path)
        data.setdefault('name', path.stem)

        profile_type = data.get('type', FileType.XML.value)
        try:
            if profile_type == FileType.CSV.value:
                profile = CsvProfile.from_dict(data)
            elif profile_type == FileType.XML.value:
                profile = MappingProfile.from_dict(data)
            else:
                raise ProfileError(f"Unknown profile type '{profile_type}' in {path}")
        except (ValueError, TypeError, AttributeError) as e:
            raise ProfileError(f"Invalid profile {path}: {e}") from e

        profile.validate()
        logger.info(f"Loaded {profile_type} profile '{profile.name}'")
        return profile

    def save_profile(self, profile: MappingProfile, path: Path) -> Path:
        """Write a profile as YAML (used to hand detected profiles to a reviewer)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(profile.to_dict(), f, sort_keys=False, allow_unicode=True)
        self._cache.pop(path, None)
        logger.info(f"Saved profile to {path}")
        return path

    def clear_cache(self):
        """Clear configuration cache (useful for testing or reload)."""
        self._cache.clear()
        logger.debug("Config cache cleared")
