"""YAML settings source with include: directive support."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

from pipeboard.core.log import logger

DEFAULTS_FILE = Path(__file__).parent.parent / "defaults" / "default.yaml"


def cli_includes(argv: list[str] | None = None) -> list[str]:
    """Collect ``--include FILE`` values ahead of pydantic's CLI parse."""
    argv = sys.argv if argv is None else argv
    includes = []
    i = 1
    while i < len(argv):
        if argv[i] == "--include" and i + 1 < len(argv):
            includes.append(argv[i + 1])
            i += 1
        i += 1
    return includes


def merge_dicts(base: dict, override: dict) -> dict:
    """Merge `override` into a copy of `base`; override wins."""
    result = base.copy()
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """YAML source layering defaults, user, project and include files.

    Merge order, later wins:
        package defaults < user config < project config
        < ``yaml_file`` / ``--include`` files

    Any file may carry an ``include:`` list; included files are
    merged underneath the file that includes them.
    """

    def __init__(self, settings_cls: type[BaseSettings], yaml_file=None):
        includes = cli_includes()
        base = yaml_file or settings_cls.model_config.get("yaml_file")
        if base and includes:
            base = [base] if isinstance(base, (str, os.PathLike)) else list(base)
            yaml_file = base + includes
        else:
            yaml_file = includes or base
        super().__init__(settings_cls, yaml_file)

    def _read_files(self, files, deep_merge: bool = False):
        """Load and merge every config layer; layers are always deep-merged."""
        files_to_load = [
            DEFAULTS_FILE,
            Path(user_config_dir("pipeboard", appauthor=False))
            / "pipeboard.yaml",
            Path("pipeboard.yaml"),
        ]
        if files:
            if isinstance(files, (str, os.PathLike)):
                files = [files]
            files_to_load.extend(Path(f).expanduser() for f in files)

        result: dict = {}
        seen: set[Path] = set()
        for file_path in files_to_load:
            resolved = file_path.resolve()
            if resolved in seen:
                continue
            seen.add(resolved)
            if not file_path.is_file():
                logger.debug(
                    "Configuration file not found (skipping)",
                    file=str(file_path),
                )
                continue
            logger.debug("Loading configuration", file=str(file_path))
            data = self._load_file_recursive(resolved, set())
            result = merge_dicts(result, data)
        return result

    def _load_file_recursive(self, filepath: Path, visited: set[Path]) -> dict:
        """Load one file with its include: directives resolved.

        Raises:
            ValueError: On a circular include or a non-mapping file
        """
        if filepath in visited:
            raise ValueError(f"Circular include: {filepath}")
        visited.add(filepath)

        with open(filepath, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {filepath} is not a mapping")

        includes = data.pop("include", None) or []
        if isinstance(includes, str):
            includes = [includes]

        for inc in includes:
            inc_path = Path(inc).expanduser()
            if not inc_path.is_absolute():
                inc_path = (filepath.parent / inc_path).resolve()
            logger.debug(
                "Including configuration",
                included_from=str(filepath),
                include_file=str(inc_path),
            )
            inc_data = self._load_file_recursive(inc_path, visited.copy())
            data = merge_dicts(inc_data, data)

        return data
