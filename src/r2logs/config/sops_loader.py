"""
Config file loading.

Credentials may live in a plain YAML file or in one encrypted with SOPS;
encrypted files are recognised by their top-level `sops` metadata block and
decrypted with the `sops` binary.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

SOPS_METADATA_KEY = "sops"


def _parse_mapping(text: str, source: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {source}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a YAML mapping in {source}, got {type(data).__name__}"
        )
    return data


def check_sops_installed() -> bool:
    """Whether the `sops` binary is on PATH."""
    return shutil.which("sops") is not None


def decrypt_sops_file(file_path: Path) -> dict[str, Any]:
    """
    Decrypt a SOPS file and parse the plaintext.

    Raises:
        RuntimeError: If sops is missing or decryption fails
        ValueError: If the plaintext is not a YAML mapping
    """
    if not check_sops_installed():
        raise RuntimeError(
            f"{file_path} is SOPS-encrypted but sops is not installed "
            "(https://github.com/getsops/sops/releases)"
        )

    logger.debug(f"Decrypting {file_path} with sops")
    try:
        result = subprocess.run(
            ["sops", "--decrypt", str(file_path)],
            capture_output=True,
            text=True,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"sops could not decrypt {file_path}: {e.stderr.strip()}") from e

    return _parse_mapping(result.stdout, file_path)


def load_config_file(file_path: Path) -> dict[str, Any]:
    """
    Load a YAML config file, decrypting it first if SOPS encrypted it.

    Raises:
        FileNotFoundError: If the file doesn't exist
        RuntimeError: If SOPS decryption fails
        ValueError: If the file is not a YAML mapping
    """
    if not file_path.is_file():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    config = _parse_mapping(file_path.read_text(encoding="utf-8"), file_path)
    if SOPS_METADATA_KEY in config:
        return decrypt_sops_file(file_path)

    logger.debug(f"Loaded plain config from {file_path}")
    return config
