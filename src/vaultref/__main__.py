import click

from vaultref.cli.resolve import resolve
from vaultref.cli.scan import scan


@click.group(invoke_without_command=True)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """vaultref CLI"""
    # Show help when no subcommand is provided
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(scan)
cli.add_command(resolve)


if __name__ == "__main__":
    cli()
