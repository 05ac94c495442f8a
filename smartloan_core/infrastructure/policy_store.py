"""Lending policy file loading"""

import json
import logging
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from smartloan_core.domain.exceptions import PolicyLoadError
from smartloan_core.domain.policy import PolicyConfiguration

logger = logging.getLogger(__name__)

DEFAULT_POLICY_PATH = Path(__file__).resolve().parents[1] / "resources" / "policy_rules.json"


def load_policy(path: Union[str, Path, None] = None) -> PolicyConfiguration:
    """
    Read and validate a policy_rules.json document.

    There is no fallback policy: any failure here must stop engine start-up.

    Raises:
        PolicyLoadError: file missing/unreadable, invalid JSON, or schema violation
    """
    policy_path = Path(path) if path else DEFAULT_POLICY_PATH

    try:
        raw = policy_path.read_text(encoding="utf-8")
    except OSError as e:
        raise PolicyLoadError(f"Cannot read policy file {policy_path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise PolicyLoadError(f"Policy file {policy_path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise PolicyLoadError(f"Policy file {policy_path} must contain a JSON object")

    try:
        policy = PolicyConfiguration.model_validate(data)
    except ValidationError as e:
        raise PolicyLoadError(f"Policy file {policy_path} does not match the schema: {e}") from e

    enabled = [key for key, rule in policy.validation_rules.items() if rule.enabled]
    logger.info(
        "Lending policy loaded",
        extra={"policy_path": str(policy_path), "enabled_rules": enabled},
    )
    return policy
