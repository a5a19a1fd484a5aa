"""Settings management for heap-images.

These are tool settings (export sizes, S3 options, output). The heap itself
lives in the JSON ledger, see ledger.py.
"""

import copy
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml


DEFAULT_SETTINGS_PATH = Path.home() / '.heapimages.yaml'

DEFAULT_SETTINGS: Dict[str, Any] = {
    'import': {
        'supported_formats': ['.jpg', '.jpeg'],
    },
    'export': {
        # Long-side pixel sizes, based on popular screen widths
        'sizes': [500, 1366, 1920, 3840],
        'jpeg_quality': 90,
    },
    'aws': {
        'region': None,
        'acl': 'public-read',
        'max_attempts': 5,
        'multipart_threshold_mb': 8,
        'multipart_chunksize_mb': 8,
        'remove_staging_dir': True,
    },
    'output': {
        'verbosity': 1,
    },
}


class Config:
    """Settings manager for heap-images."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize settings.

        Args:
            config_path: Path to a YAML settings file. If None, uses
                ~/.heapimages.yaml when it exists, else the built-in defaults.
        """
        self._config: Dict[str, Any] = copy.deepcopy(DEFAULT_SETTINGS)
        self._load_config(config_path)

    def _load_config(self, config_path: Optional[Union[str, Path]] = None) -> None:
        """Load settings from file over the defaults."""
        if config_path is None:
            config_path = DEFAULT_SETTINGS_PATH

        config_path = Path(config_path)
        if not config_path.exists():
            return

        with open(config_path, 'r', encoding='utf-8') as f:
            loaded = yaml.safe_load(f) or {}
        _merge(self._config, loaded)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting using dot notation.

        Args:
            key: Setting key in dot notation (e.g., 'export.sizes')
            default: Default value if key not found

        Returns:
            Setting value
        """
        keys = key.split('.')
        value = self._config

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Set a setting using dot notation.

        Args:
            key: Setting key in dot notation
            value: Value to set
        """
        keys = key.split('.')
        config = self._config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    @property
    def supported_formats(self) -> List[str]:
        return [fmt.lower() for fmt in self.get('import.supported_formats', ['.jpg'])]

    @property
    def export_sizes(self) -> List[int]:
        """Long-side sizes to resize exported images to."""
        return parse_sizes(self.get('export.sizes', []))

    @property
    def jpeg_quality(self) -> int:
        return self.get('export.jpeg_quality', 90)

    @property
    def aws_region(self) -> Optional[str]:
        return self.get('aws.region')

    @property
    def aws_acl(self) -> str:
        return self.get('aws.acl', 'public-read')

    @property
    def aws_max_attempts(self) -> int:
        """Attempts per S3 request, including multi-part chunks."""
        return self.get('aws.max_attempts', 5)

    @property
    def multipart_threshold(self) -> int:
        return int(self.get('aws.multipart_threshold_mb', 8) * 1024 * 1024)

    @property
    def multipart_chunksize(self) -> int:
        return int(self.get('aws.multipart_chunksize_mb', 8) * 1024 * 1024)

    @property
    def remove_staging_dir(self) -> bool:
        return self.get('aws.remove_staging_dir', True)

    @property
    def verbosity(self) -> int:
        return self.get('output.verbosity', 1)

    def is_supported_format(self, file_path: Union[str, Path]) -> bool:
        """Check if an image can be imported.

        Args:
            file_path: Path to file

        Returns:
            True if format is supported
        """
        return Path(file_path).suffix.lower() in self.supported_formats

    def save_config(self, config_path: Union[str, Path]) -> None:
        """Save current settings to file.

        Args:
            config_path: Path to save settings
        """
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(self._config, f, default_flow_style=False, sort_keys=False)


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value


def parse_sizes(sizes: Union[str, List[Any]]) -> List[int]:
    """Parse sizes given as '500,1366' or a list into sorted unique ints.

    Raises:
        ValueError: If a size is not a positive integer
    """
    if isinstance(sizes, str):
        sizes = [part for part in sizes.split(',') if part.strip()]
    parsed = sorted({int(str(size).strip()) for size in sizes})
    if any(size <= 0 for size in parsed):
        raise ValueError(f"Sizes must be positive: {parsed}")
    return parsed


def load_config(config_path: Optional[Union[str, Path]] = None) -> Config:
    """Load settings from file or use defaults.

    Args:
        config_path: Path to settings file

    Returns:
        Config instance
    """
    return Config(config_path)
