"""
Configuration file support for exprguard.

Looks for a .exprguard.yml file and loads settings that decide which context
paths count as untrusted when expressions are checked.

Example .exprguard.yml:

    # Use the table for privileged triggers (pull_request_target, workflow_run, ...)
    privileged: true

    # Extra paths to treat as untrusted ('*' matches any property or element)
    untrusted_paths:
      - github.event.pull_request.head.repo.full_name
      - env.PR_TITLE

    # Expressions live in a reusable workflow with these inputs.
    # An empty list means the inputs are unknown: every inputs.* is untrusted.
    reusable_workflow_inputs:
      - title
      - body

    # Step outputs known to carry untrusted data
    tainted_step_outputs:
      get-ref:
        - ref

    # Defined configuration variables (vars.*)
    config_vars:
      - DEPLOY_ENV
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from exprguard.expressions.untrusted_map import (
    BUILTIN_PRIVILEGED_UNTRUSTED_INPUTS,
    BUILTIN_UNTRUSTED_INPUTS,
    ContextPropertySearchRoots,
    build_search_roots,
    create_untrusted_inputs_for_reusable_workflow,
    create_untrusted_inputs_with_tainted_step_outputs,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".exprguard.yml"


@dataclass
class Config:
    """Parsed exprguard configuration."""
    privileged: bool = False
    untrusted_paths: list[str] = field(default_factory=list)
    reusable_workflow_inputs: Optional[list[str]] = None  # None: not a reusable workflow
    tainted_step_outputs: dict[str, list[str]] = field(default_factory=dict)
    config_vars: Optional[list[str]] = None

    def build_roots(self) -> ContextPropertySearchRoots:
        """
        Build the search roots described by this configuration.

        Raises:
            ValueError: If an untrusted path is malformed.
        """
        if self.reusable_workflow_inputs is not None:
            roots = create_untrusted_inputs_for_reusable_workflow(
                self.reusable_workflow_inputs, privileged=self.privileged,
            )
        elif self.privileged:
            roots = BUILTIN_PRIVILEGED_UNTRUSTED_INPUTS
        else:
            roots = BUILTIN_UNTRUSTED_INPUTS

        if self.tainted_step_outputs:
            step_roots = create_untrusted_inputs_with_tainted_step_outputs(
                self.tainted_step_outputs, privileged=self.privileged,
            )
            roots = dict(roots)
            roots["steps"] = step_roots["steps"]

        if self.untrusted_paths:
            roots = build_search_roots(self.untrusted_paths, base=roots)

        logger.debug("Search roots: %s", sorted(roots))
        return roots


def _str_list(raw: dict, key: str) -> Optional[list[str]]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError(f"'{key}' must be a list, got {type(value).__name__}")
    return [str(v) for v in value]


def _step_outputs(raw: dict) -> dict[str, list[str]]:
    value = raw.get("tainted_step_outputs") or {}
    if not isinstance(value, dict):
        raise ValueError(f"'tainted_step_outputs' must be a mapping, got {type(value).__name__}")
    outputs = {}
    for step_id, names in value.items():
        if isinstance(names, str):
            names = [names]
        if not isinstance(names, list):
            raise ValueError(f"outputs of step '{step_id}' must be a list")
        outputs[str(step_id)] = [str(n) for n in names]
    return outputs


def load_config(config_path: Optional[str] = None, start_dir: Optional[str] = None) -> Config:
    """
    Load configuration from a .exprguard.yml file.

    Search order:
      1. Explicit config_path if provided
      2. .exprguard.yml in start_dir (default: current directory) or any parent

    Returns a Config with defaults if no config file is found.

    Raises:
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If a setting has the wrong shape.
    """
    path = _find_config_file(config_path, start_dir)

    if path is None:
        logger.debug("No config file found, using defaults")
        return Config()

    logger.info("Loading config from %s", path)

    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        logger.warning("Config file is not a YAML mapping, using defaults")
        return Config()

    return Config(
        privileged=bool(raw.get("privileged", False)),
        untrusted_paths=_str_list(raw, "untrusted_paths") or [],
        reusable_workflow_inputs=_str_list(raw, "reusable_workflow_inputs"),
        tainted_step_outputs=_step_outputs(raw),
        config_vars=_str_list(raw, "config_vars"),
    )


def _find_config_file(
    config_path: Optional[str] = None,
    start_dir: Optional[str] = None,
) -> Optional[str]:
    """Find the config file, returning its path or None."""
    # 1. Explicit path
    if config_path:
        p = Path(config_path)
        if p.is_file():
            return str(p)
        logger.warning("Config file not found: %s", config_path)
        return None

    # 2. Start directory, then walk up
    start = Path(start_dir) if start_dir else Path.cwd()
    if start.is_file():
        start = start.parent
    for directory in (start, *start.parents):
        candidate = directory / DEFAULT_CONFIG_FILENAME
        if candidate.is_file():
            return str(candidate)

    return None
