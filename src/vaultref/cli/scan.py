from pathlib import Path

import click

from vaultref.cli.utils import configure_logging, output_error, output_result
from vaultref.layers import LayeredConfig
from vaultref.orchestrator import find_references
from vaultref.references import mask_reference


@click.command(name="scan")
@click.argument("config_file", type=click.Path(path_type=Path))
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def scan(config_file: Path, json_output: bool, debug: bool) -> None:
    """List the vault references in a YAML configuration file.

    Nothing is resolved and no Vault connection is made. Secret paths and
    keys are masked in the output.

    \b
    Examples:
        vaultref scan appsettings.yaml
        vaultref scan appsettings.yaml --json-output
    """
    configure_logging(debug)

    try:
        config = LayeredConfig.from_yaml(config_file)
        references = find_references(config.snapshot())
    except Exception as e:
        output_error(e, json_output, debug)
        return

    if json_output:
        output_result({key: mask_reference(value) for key, value in references}, json_output=True)
    elif not references:
        click.echo("No vault references found.")
    else:
        output_result([f"{key}: {mask_reference(value)}" for key, value in references])
