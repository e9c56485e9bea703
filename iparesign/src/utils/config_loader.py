import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from iparesign.src.core.errors import ConfigurationError

PROFILE_DECODERS = ("asn1", "security")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass
class ResignConfig:
    """Settings that shape how a resign run talks to the outside world"""

    codesign: str = "codesign"
    profile_decoder: str = "asn1"
    verify: bool = False
    output_suffix: str = "-resigned"


def get_config_path() -> Path:
    """Return the path to the configuration file."""
    env_path = os.environ.get("IPARESIGN_CONFIG")
    if env_path:
        return Path(env_path)
    return Path.home() / ".iparesign" / "config.toml"


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from TOML file."""
    config_path = config_path or get_config_path()
    if not config_path.exists():
        return {}

    try:
        return toml.load(config_path)
    except (toml.TomlDecodeError, OSError) as e:
        raise ConfigurationError(f"Failed to load config {config_path}: {e}")


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean for {name}: {value!r}")


def get_resign_config(config_path: Optional[Path] = None) -> ResignConfig:
    """Build the run configuration from the config file and environment.

    Environment variables take precedence over values in the file.
    """
    config = load_config(config_path)
    signing = config.get("signing", {})
    output = config.get("output", {})

    codesign = os.environ.get("IPARESIGN_CODESIGN") or signing.get(
        "codesign", "codesign"
    )
    decoder = os.environ.get("IPARESIGN_PROFILE_DECODER") or signing.get(
        "profile_decoder", "asn1"
    )
    verify = os.environ.get("IPARESIGN_VERIFY") or signing.get("verify", False)
    suffix = os.environ.get("IPARESIGN_OUTPUT_SUFFIX") or output.get(
        "suffix", "-resigned"
    )

    if decoder not in PROFILE_DECODERS:
        raise ConfigurationError(
            f"Unknown profile decoder {decoder!r}, expected one of: "
            + ", ".join(PROFILE_DECODERS)
        )
    if not isinstance(suffix, str) or not suffix or "/" in suffix:
        raise ConfigurationError(f"Invalid output suffix: {suffix!r}")

    return ResignConfig(
        codesign=str(codesign),
        profile_decoder=decoder,
        verify=_parse_bool("verify", verify),
        output_suffix=suffix,
    )
