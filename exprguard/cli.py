"""
CLI entry point: ties together config → analyzer → reporter.

Usage:
  # Check a single expression:
  python3 -m exprguard check 'github.event.pull_request.title'

  # Check strings that embed ${{ }} expressions (e.g. a run: script):
  python3 -m exprguard check --embedded 'echo "${{ github.head_ref }}"'

  # Read expressions from stdin, one per line, and output JSON:
  cat exprs.txt | python3 -m exprguard check - --format json

  # Expressions inside a reusable workflow whose inputs are unknown:
  python3 -m exprguard check --reusable-workflow 'inputs.title'

  # List the untrusted paths in effect:
  python3 -m exprguard roots --privileged

Exit codes:
  0: no diagnostics
  1: untrusted input or expression errors found
  2: error (bad config, bad option value, etc.)
"""

import logging
import sys
from typing import Optional

import click
import yaml

from exprguard.analyzer import analyze_expression, analyze_string
from exprguard.config import Config, load_config
from exprguard.reporter import report_console, report_json

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_ERROR = 2


def _setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _roots_options(func):
    """Options shared by every command that builds search roots."""
    options = [
        click.option("--config", "config_path", default=None, help="Path to .exprguard.yml config file."),
        click.option("--privileged", is_flag=True, help="Use the untrusted-path table for privileged triggers."),
        click.option("--reusable-input", "reusable_inputs", multiple=True,
                     help="Declared input of the reusable workflow; marks inputs.<name> untrusted."),
        click.option("--reusable-workflow", is_flag=True,
                     help="Expressions are in a reusable workflow with unknown inputs (inputs.* untrusted)."),
        click.option("--tainted-output", "tainted_outputs", multiple=True,
                     help="Step output carrying untrusted data, as STEP_ID.OUTPUT."),
        click.option("--untrusted", "untrusted_paths", multiple=True,
                     help="Extra dotted path to treat as untrusted."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _effective_config(
    config_path: Optional[str],
    privileged: bool,
    reusable_inputs: tuple[str, ...],
    reusable_workflow: bool,
    tainted_outputs: tuple[str, ...],
    untrusted_paths: tuple[str, ...],
) -> Config:
    """Load the config file and apply CLI flags on top of it (flags extend the file)."""
    config = load_config(config_path=config_path)

    if privileged:
        config.privileged = True
    # an empty input list from the file means inputs.*, which already covers any name
    if config.reusable_workflow_inputs is None:
        if reusable_inputs:
            config.reusable_workflow_inputs = list(reusable_inputs)
        elif reusable_workflow:
            config.reusable_workflow_inputs = []
    elif config.reusable_workflow_inputs:
        config.reusable_workflow_inputs = config.reusable_workflow_inputs + list(reusable_inputs)

    for spec in tainted_outputs:
        step_id, sep, output = spec.partition(".")
        if not sep or not step_id or not output:
            raise ValueError(f"--tainted-output must look like STEP_ID.OUTPUT, got '{spec}'")
        config.tainted_step_outputs.setdefault(step_id, []).append(output)

    config.untrusted_paths = config.untrusted_paths + list(untrusted_paths)
    return config


def _load_roots(ctx_args: dict):
    try:
        config = _effective_config(**ctx_args)
        return config, config.build_roots()
    except (yaml.YAMLError, ValueError) as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(EXIT_ERROR)
    except OSError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ERROR)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging.")
def cli(verbose: bool):
    """GitHub Actions expression taint checker: find untrusted input in ${{ }} expressions."""
    _setup_logging(verbose)


@cli.command()
@click.argument("expressions", nargs=-1)
@click.option("--embedded", is_flag=True, help="Inputs are strings containing ${{ }} expressions.")
@click.option("--format", "output_format", type=click.Choice(["console", "json"]), default="console",
              help="Output format.")
@_roots_options
def check(
    expressions: tuple[str, ...],
    embedded: bool,
    output_format: str,
    config_path: Optional[str],
    privileged: bool,
    reusable_inputs: tuple[str, ...],
    reusable_workflow: bool,
    tainted_outputs: tuple[str, ...],
    untrusted_paths: tuple[str, ...],
):
    """Check expressions for untrusted input and expression errors.

    Pass '-' (or nothing) to read from stdin: one expression per line, or the
    whole text with --embedded. Exits with code 0 if nothing is found, 1 if
    diagnostics are found, 2 on error.
    """
    config, roots = _load_roots(dict(
        config_path=config_path,
        privileged=privileged,
        reusable_inputs=reusable_inputs,
        reusable_workflow=reusable_workflow,
        tainted_outputs=tainted_outputs,
        untrusted_paths=untrusted_paths,
    ))

    inputs = list(expressions)
    if not inputs or inputs == ["-"]:
        text = click.get_text_stream("stdin").read()
        inputs = [text] if embedded else [line for line in text.splitlines() if line.strip()]

    if not inputs:
        click.echo("No expressions to check.")
        sys.exit(EXIT_OK)

    reports = []
    for item in inputs:
        if embedded:
            reports.extend(analyze_string(item, roots, config_vars=config.config_vars))
        else:
            reports.append(analyze_expression(item.strip(), roots, config_vars=config.config_vars))
    logger.info("Checked %d expression(s)", len(reports))

    if output_format == "json":
        click.echo(report_json(reports))
    else:
        report_console(reports, label="command line" if expressions else "stdin")

    if any(r.errors for r in reports):
        sys.exit(EXIT_FINDINGS)
    sys.exit(EXIT_OK)


@cli.command()
@_roots_options
def roots(
    config_path: Optional[str],
    privileged: bool,
    reusable_inputs: tuple[str, ...],
    reusable_workflow: bool,
    tainted_outputs: tuple[str, ...],
    untrusted_paths: tuple[str, ...],
):
    """List the untrusted context paths in effect."""
    _, search_roots = _load_roots(dict(
        config_path=config_path,
        privileged=privileged,
        reusable_inputs=reusable_inputs,
        reusable_workflow=reusable_workflow,
        tainted_outputs=tainted_outputs,
        untrusted_paths=untrusted_paths,
    ))
    for name in sorted(search_roots):
        for path in search_roots[name].iter_leaf_paths():
            click.echo(path)


if __name__ == "__main__":
    cli()
