import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from . import __version__
from .cli_config import (
    SUPPORTED_DIALECTS,
    SUPPORTED_OUTPUT_FORMATS,
    DepfileToolsConfig,
    apply_config_data,
    create_sample_config,
    get_config,
    load_config_file,
    validate_config_values,
)
from .depfile import URI_LIST_DIALECT, Depfile
from .error_handling import setup_error_handling
from .file_system import POSIX, WINDOWS, FileSystem
from .reporting import DepfileReporter, depfile_to_dict
from .structured_logging import configure_logging, get_depfile_logger

console = Console()
err_console = Console(stderr=True)

PATH_STYLES = (POSIX, WINDOWS)


def _check_source_file(file_path: str, config: DepfileToolsConfig, quiet: bool) -> None:
    """Apply the configured size limit and extension allow-list."""
    path = Path(file_path)
    size = path.stat().st_size
    if size > config.security.max_file_size_bytes:
        raise click.ClickException(
            f"File too large: {size} bytes (max: {config.security.max_file_size_bytes})"
        )

    allowed = {extension.lower() for extension in config.security.allowed_file_extensions}
    if path.suffix.lower() not in allowed:
        get_depfile_logger().warning("unexpected_extension", source=file_path, extension=path.suffix)
        if not quiet:
            err_console.print(
                f"⚠️  Unexpected depfile extension '{escape(path.suffix)}' for {escape(path.name)}",
                style="yellow",
            )


def load_depfile(
    file_path: str,
    dialect: str,
    output_path: Optional[str],
    unescape: bool,
    file_system: FileSystem,
) -> Depfile:
    """Parse a depfile from disk, turning storage failures into CLI errors."""
    events = get_depfile_logger()
    events.set_context(source=file_path, dialect=dialect)
    try:
        if dialect == URI_LIST_DIALECT:
            if not output_path:
                raise click.ClickException(
                    "--output is required for the uri-list dialect"
                )
            return Depfile.parse_uri_list_file(
                file_path, output_path, file_system=file_system
            )
        return Depfile.parse_file(file_path, file_system=file_system, unescape=unescape)
    except UnicodeError as e:
        events.error("depfile_read_failed", reason=type(e).__name__)
        raise click.ClickException(
            f"Failed to decode {file_path} as {file_system.encoding}: {e}"
        )
    except OSError as e:
        events.error("depfile_read_failed", reason=type(e).__name__)
        raise click.ClickException(f"Failed to read depfile: {e}")
    finally:
        events.clear_context()


def write_depfile(depfile: Depfile, destination: str, file_system: FileSystem) -> None:
    """Write a depfile, turning storage failures into CLI errors."""
    try:
        depfile.write_to_file(destination, file_system=file_system)
    except (OSError, UnicodeError) as e:
        raise click.ClickException(f"Failed to write depfile: {e}")


def output_json_results(
    depfile: Depfile, file_path: str, dialect: str, output_file: Optional[str] = None
) -> None:
    """Export a parsed record as JSON."""
    json_output = json.dumps(
        depfile_to_dict(depfile, source=file_path, dialect=dialect),
        indent=2,
        ensure_ascii=False,
    )

    if output_file:
        try:
            with open(output_file, "w", encoding="utf-8") as f:
                f.write(json_output + "\n")
        except OSError as e:
            raise click.ClickException(f"Failed to write results: {e}")
        console.print(f"✅ Results saved to {escape(output_file)}", style="green")
    else:
        click.echo(json_output)


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override the configured log level",
)
@click.pass_context
def cli(ctx, version, log_level):
    """
    📄 depfile-tools: read and write build dependency files

    Parses Makefile-style depfiles and file:// URI lists, and writes
    dependency records back as Makefile-style depfiles.
    """
    if version:
        console.print(f"depfile-tools version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        return

    config = get_config()
    level_name = (log_level or config.logging.log_level).upper()
    configure_logging(
        level_name,
        enable_json=config.logging.enable_json,
        log_format=config.logging.log_format,
    )
    setup_error_handling(
        log_level=getattr(logging, level_name, logging.WARNING),
        log_format=config.logging.log_format,
    )


@cli.command()
@click.argument(
    "file_path", type=click.Path(exists=True, readable=True, dir_okay=False)
)
@click.option(
    "--dialect",
    type=click.Choice(SUPPORTED_DIALECTS, case_sensitive=False),
    default=None,
    help="Depfile dialect (default from config: make)",
)
@click.option(
    "--output",
    "output_path",
    help="Output path the URI list belongs to (uri-list dialect only)",
)
@click.option(
    "--unescape/--no-unescape",
    default=None,
    help="Treat '\\ ' as an escaped space inside paths",
)
@click.option(
    "--path-style",
    type=click.Choice(PATH_STYLES, case_sensitive=False),
    default=None,
    help="Path style used to turn URIs into paths (default: host)",
)
@click.option(
    "--output-format",
    "-f",
    type=click.Choice(SUPPORTED_OUTPUT_FORMATS, case_sensitive=False),
    default=None,
    help="Output format",
)
@click.option(
    "--output-file",
    type=click.Path(),
    help="Save JSON results to this file",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-critical output")
@click.option(
    "--fail-on-empty",
    is_flag=True,
    help="Exit with code 1 if no dependencies were found",
)
def parse(
    file_path: str,
    dialect: Optional[str],
    output_path: Optional[str],
    unescape: Optional[bool],
    path_style: Optional[str],
    output_format: Optional[str],
    output_file: Optional[str],
    quiet: bool,
    fail_on_empty: bool,
):
    """Parse a depfile and show its outputs and inputs."""
    config = get_config()
    dialect = (dialect or config.parse.dialect).lower()
    output_format = (output_format or config.output.output_format).lower()
    unescape = config.parse.unescape if unescape is None else unescape
    quiet = quiet or config.output.quiet

    if output_file and output_format != "json":
        raise click.ClickException("Output file can only be used with JSON format")
    if output_path and dialect != URI_LIST_DIALECT:
        raise click.ClickException("--output only applies to the uri-list dialect")

    _check_source_file(file_path, config, quiet)

    file_system = FileSystem(style=path_style, encoding=config.parse.encoding)
    depfile = load_depfile(file_path, dialect, output_path, unescape, file_system)

    if output_format == "json":
        output_json_results(depfile, file_path, dialect, output_file)
    elif not quiet:
        DepfileReporter(console).print_depfile(depfile, file_path, dialect)
    elif depfile.is_empty:
        err_console.print(f"⚠️  No dependencies found in {escape(file_path)}", style="yellow")

    if fail_on_empty and depfile.is_empty:
        sys.exit(1)


@cli.command()
@click.argument(
    "uri_list_file", type=click.Path(exists=True, readable=True, dir_okay=False)
)
@click.argument("output")
@click.option(
    "--depfile",
    "destination",
    required=True,
    type=click.Path(dir_okay=False),
    help="Where to write the Makefile-style depfile",
)
@click.option(
    "--path-style",
    type=click.Choice(PATH_STYLES, case_sensitive=False),
    default=None,
    help="Path style used to turn URIs into paths (default: host)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-critical output")
def convert(
    uri_list_file: str,
    output: str,
    destination: str,
    path_style: Optional[str],
    quiet: bool,
):
    """Convert a file:// URI list into a Makefile-style depfile for OUTPUT."""
    config = get_config()
    _check_source_file(uri_list_file, config, quiet)

    file_system = FileSystem(style=path_style, encoding=config.parse.encoding)
    depfile = load_depfile(uri_list_file, URI_LIST_DIALECT, output, False, file_system)
    write_depfile(depfile, destination, file_system)

    if not quiet:
        DepfileReporter(console).print_written(destination, depfile)


@cli.command()
@click.option(
    "--input", "-i", "inputs", multiple=True, help="Input path (repeatable)"
)
@click.option(
    "--output", "-o", "outputs", multiple=True, help="Output path (repeatable)"
)
@click.option(
    "--depfile",
    "destination",
    required=True,
    type=click.Path(dir_okay=False),
    help="Where to write the Makefile-style depfile",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-critical output")
def write(inputs: Tuple[str, ...], outputs: Tuple[str, ...], destination: str, quiet: bool):
    """Write a Makefile-style depfile from explicit inputs and outputs."""
    config = get_config()
    file_system = FileSystem(encoding=config.parse.encoding)
    depfile = Depfile.from_paths(inputs, outputs)
    write_depfile(depfile, destination, file_system)

    if not quiet:
        DepfileReporter(console).print_written(destination, depfile)


@cli.command()
def info():
    """Show supported dialects, escaping rules and configuration sources."""
    info_text = """
[bold blue]📋 Supported Dialects:[/bold blue]

• [green]make[/green] - a single Makefile-style line: [cyan]outputs: inputs[/cyan]
• [green]uri-list[/green] - one [cyan]file://[/cyan] URI per line, plus an output path

[bold blue]🔍 Parsing Rules:[/bold blue]

• The separator is the first colon followed by whitespace or end of file
• Drive-letter colons such as [cyan]C:\\a.txt[/cyan] are never separators
• Duplicate paths are dropped, first occurrence wins
• A file without a separator has no known dependencies (empty result)
• Lines of a URI list that are not file URIs are skipped

[bold blue]✏️  Writing Rules:[/bold blue]

• Spaces in paths are escaped as [cyan]\\ [/cyan]
• Path separators are written as-is

[bold blue]🌍 Environment Variables:[/bold blue]

• [cyan]DEPFILE_TOOLS_DIALECT[/cyan] - Default dialect (make, uri-list)
• [cyan]DEPFILE_TOOLS_UNESCAPE[/cyan] - Unescape '\\ ' when parsing
• [cyan]DEPFILE_TOOLS_ENCODING[/cyan] - Text encoding for depfiles
• [cyan]DEPFILE_TOOLS_OUTPUT_FORMAT[/cyan] - console or json
• [cyan]DEPFILE_TOOLS_QUIET[/cyan] - Suppress non-critical output
• [cyan]DEPFILE_TOOLS_MAX_FILE_SIZE_MB[/cyan] - Largest depfile accepted
• [cyan]DEPFILE_TOOLS_LOG_LEVEL[/cyan] - Log level

[bold blue]📄 Configuration Files:[/bold blue]

• [green].depfile-tools.json[/green] / [green].yaml[/green] / [green].toml[/green] - Project-level config
• [green]~/.config/depfile-tools/config.json[/green] - User-level config
• [green]~/.depfile-tools.json[/green] - User home config

[bold blue]💡 Usage Examples:[/bold blue]

  # Show a depfile
  depfile-tools parse build/main.d

  # Read a URI list produced by a JavaScript compiler
  depfile-tools parse main.dart.js.deps --dialect uri-list --output main.dart.js

  # Convert it into a Makefile-style depfile
  depfile-tools convert main.dart.js.deps main.dart.js --depfile main.d

  # JSON output for automation
  depfile-tools parse build/main.d --output-format json
"""
    console.print(
        Panel(
            info_text,
            title="[bold]depfile-tools Information[/bold]",
            border_style="blue",
        )
    )


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".depfile-tools.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(
            f"⚠️  Config file already exists at {escape(str(config_path))}", style="yellow"
        )
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_sample_config())
    except OSError as e:
        raise click.ClickException(f"Failed to create config file: {e}")

    console.print(
        f"✅ Created configuration file at {escape(str(config_path))}", style="green"
    )
    console.print("Edit this file to customize your settings", style="dim")


@config.command("show")
def config_show():
    """Show current configuration settings."""
    current_config = get_config()

    console.print(Panel("[bold blue]🔧 Configuration[/bold blue]", border_style="blue"))

    console.print("\n[bold cyan]📥 Parse Settings:[/bold cyan]")
    console.print(f"  Dialect: {current_config.parse.dialect}")
    console.print(f"  Unescape: {current_config.parse.unescape}")
    console.print(f"  Encoding: {current_config.parse.encoding}")

    console.print("\n[bold cyan]📊 Output Settings:[/bold cyan]")
    console.print(f"  Output Format: {current_config.output.output_format}")
    console.print(f"  Quiet: {current_config.output.quiet}")

    console.print("\n[bold cyan]🔒 Security Settings:[/bold cyan]")
    console.print(f"  Max File Size: {current_config.security.max_file_size_mb} MB")
    console.print(
        f"  Allowed Extensions: {', '.join(current_config.security.allowed_file_extensions)}"
    )

    console.print("\n[bold cyan]📝 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")
    console.print(f"  Log Format: {escape(current_config.logging.log_format)}")
    console.print(f"  JSON Logs: {current_config.logging.enable_json}")


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def config_validate(config_file: str):
    """Validate a configuration file."""
    config_data = load_config_file(Path(config_file))
    if config_data is None:
        raise click.ClickException(f"Could not load config from {config_file}")

    candidate = DepfileToolsConfig()
    apply_config_data(candidate, config_data)
    errors = validate_config_values(candidate)
    if errors:
        for error in errors:
            console.print(f"  • {escape(error)}", style="red")
        raise click.ClickException(f"Configuration file {config_file} is invalid")

    console.print(
        f"✅ Configuration file {escape(config_file)} is valid", style="green"
    )


if __name__ == "__main__":
    cli()
