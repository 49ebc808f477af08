from pathlib import Path
from typing import Any

import click

from vaultref.cli.utils import configure_logging, output_error, output_result
from vaultref.layers import LayeredConfig
from vaultref.loader import load_resolver_options
from vaultref.orchestrator import ResolutionOrchestrator


@click.command(name="resolve")
@click.argument("config_file", type=click.Path(path_type=Path))
@click.option(
    "--options",
    "options_file",
    type=click.Path(path_type=Path),
    help="Resolver options file (defaults to VAULTREF_CONFIG or ~/.vaultref/config.yaml)",
)
@click.option("--keep-going", is_flag=True, help="Skip references that fail instead of aborting")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def resolve(
    config_file: Path,
    options_file: Path | None,
    keep_going: bool,
    json_output: bool,
    debug: bool,
) -> None:
    """Resolve the vault references in a YAML configuration file.

    Connects to Vault and checks that every reference can be resolved.
    Only the status of each key is reported; secret values are never printed.

    \b
    Examples:
        vaultref resolve appsettings.yaml
        vaultref resolve appsettings.yaml --keep-going --json-output
        vaultref resolve appsettings.yaml --options vault.yaml
    """
    configure_logging(debug)

    try:
        options = load_resolver_options(options_file)
        if keep_going:
            options = options.model_copy(update={"throw_on_resolve_failure": False})

        config = LayeredConfig.from_yaml(config_file)
        with ResolutionOrchestrator(options=options) as orchestrator:
            orchestrator.apply(config)
            summary = orchestrator.get_reference_summary()
    except Exception as e:
        output_error(e, json_output, debug)
        return

    if json_output:
        output_result(summary, json_output=True)
    else:
        output_result(_format_summary(summary))


def _format_summary(summary: dict[str, Any]) -> list[str]:
    if not summary["total_references"]:
        return ["No vault references found."]

    lines = []
    for key, status in summary["references"].items():
        if status["resolved"]:
            lines.append(f"✓ {key}: {status['reference']}")
        else:
            lines.append(f"✗ {key}: {status['reference']} ({status['error']})")
    lines.append(
        f"\n{summary['successful_references']} of {summary['total_references']} "
        "reference(s) resolved"
    )
    return lines
