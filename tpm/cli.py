"""tpm CLI - manage Terminus plugins."""

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tpm import __version__
from tpm.config import TpmConfig
from tpm.errors import TpmError, UsageError
from tpm.logging import setup_logging
from tpm.manager import Level, PluginManager, Report

console = Console()


@click.group(name="plugin")
@click.version_option(version=__version__)
@click.option(
    "--plugins-dir",
    type=click.Path(file_okay=False),
    help="Plugins directory (default: $TERMINUS_PLUGINS_DIR or ~/terminus/plugins)",
)
@click.option(
    "--legacy",
    is_flag=True,
    help="Install from Git URLs only and stop at the first invalid one",
)
@click.option("--timeout", type=float, help="Network timeout in seconds (default: 5)")
@click.option("--registry-url", help="Base URL of the plugin registry")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    plugins_dir: str = None,
    legacy: bool = False,
    timeout: float = None,
    registry_url: str = None,
    verbose: bool = False,
):
    """Manage Terminus plugins."""
    if isinstance(ctx.obj, PluginManager):
        return

    try:
        config = TpmConfig.from_env(
            plugins_root_override=plugins_dir,
            strict_install=legacy,
            http_timeout=timeout,
            registry_url=registry_url,
            log_level="DEBUG" if verbose else None,
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    setup_logging(config.log_level, str(config.log_file) if config.log_file else None)
    ctx.obj = ctx.with_resource(PluginManager(config))


def _render(report: Report) -> None:
    for entry in report.entries:
        if entry.level == Level.ERROR:
            console.print(f"[red]✗ {escape(entry.message)}[/red]")
        else:
            console.print(escape(entry.message))


def _run(ctx: click.Context, operation) -> Report:
    """Run a manager operation, turning fatal errors into exit status 1."""
    try:
        report = operation(ctx.obj)
    except UsageError as e:
        console.print(escape(str(e)))
        ctx.exit(1)
    except TpmError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        ctx.exit(1)

    _render(report)
    if report.failed:
        ctx.exit(1)
    return report


@cli.command()
@click.argument("args", nargs=-1)
@click.pass_context
def install(ctx: click.Context, args: tuple[str, ...]):
    """Install plugins by name or Git repository URL.

    Examples:
        tpm install terminus-hello-plugin
        tpm install https://github.com/org/terminus-hello-plugin
    """
    _run(ctx, lambda manager: manager.install(args))


@cli.command()
@click.pass_context
def show(ctx: click.Context):
    """List installed plugins."""
    _run(ctx, lambda manager: manager.show())


@cli.command()
@click.argument("args", nargs=-1)
@click.pass_context
def update(ctx: click.Context, args: tuple[str, ...]):
    """Update plugins with git pull.

    Examples:
        tpm update all
        tpm update terminus-hello-plugin
    """
    _run(ctx, lambda manager: manager.update(args))


@cli.command()
@click.argument("args", nargs=-1)
@click.pass_context
def uninstall(ctx: click.Context, args: tuple[str, ...]):
    """Remove installed plugins."""
    _run(ctx, lambda manager: manager.uninstall(args))


@cli.command()
@click.argument("args", nargs=-1)
@click.pass_context
def search(ctx: click.Context, args: tuple[str, ...]):
    """Search the plugin registry.

    Example:
        tpm search cache
    """
    records = []

    def operation(manager: PluginManager) -> Report:
        report, found = manager.search(args)
        records.extend(found)
        return report

    _run(ctx, operation)
    if not records:
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Package", style="cyan")
    table.add_column("Title")
    table.add_column("Description")
    table.add_column("Author")

    for record in records:
        table.add_row(
            escape(record.package),
            escape(record.title),
            escape(record.description),
            escape(record.author),
        )

    console.print(table)


@cli.command()
@click.argument("subcommand", required=False)
@click.argument("args", nargs=-1)
@click.pass_context
def repository(ctx: click.Context, subcommand: str = None, args: tuple[str, ...] = ()):
    """Manage plugin repositories.

    Examples:
        tpm repository add https://github.com/org
        tpm repository list
        tpm repository remove https://github.com/org
    """
    _run(ctx, lambda manager: manager.repository(subcommand, args))


cli.add_command(install, name="add")
cli.add_command(show, name="list")
cli.add_command(update, name="up")
cli.add_command(uninstall, name="remove")
cli.add_command(search, name="find")
cli.add_command(repository, name="repo")


def main():
    """Console script entry point."""
    cli(prog_name="tpm")


if __name__ == "__main__":
    main()
