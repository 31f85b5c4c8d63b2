"""Build control-plane update parameters from a diff."""
from typing import Any, Mapping

from .schema import ConfigDiff, UpdateParams


def build_update_params(
    diff: ConfigDiff,
    original_config: Mapping[str, Any],
    token_field: str = "digest",
) -> UpdateParams:
    """
    Turn a diff into an update payload.

    Changed and added values are copied verbatim. Removed keys are joined into
    a single ``delete`` instruction. The original config's concurrency token is
    attached whenever it is present.
    """
    params = UpdateParams()
    for key, (_old, new) in diff.changed.items():
        params[key] = new
    for key, value in diff.added.items():
        params[key] = value
    if diff.removed:
        params[UpdateParams.DELETE_KEY] = ",".join(diff.removed)

    token = original_config.get(token_field)
    if token:
        params[token_field] = token
    return params
