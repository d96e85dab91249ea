"""
ringtrace Command Line Interface
Record instrumented programs, convert preserved event files, open traces.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from ringtrace import __version__
from ringtrace.core.config import RecorderConfig, load_config
from ringtrace.core.errors import RingtraceError
from ringtrace.recorder.session import RecordingSession, convert_events
from ringtrace.trace.viewer import make_viewer

DEFAULT_TRACEFILE = "trace.json"


# Configure logging
def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )


def _fail(message: str) -> None:
    click.echo(click.style(f"\n✗ Error: {message}", fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(__version__, prog_name="ringtrace")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """
    ringtrace - fiber scheduling timelines for instrumented programs.

    Records when fibers run on which ring, when they block and resume,
    GC phases, scopes and spans, as a trace for the Perfetto UI.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command(context_settings={"ignore_unknown_options": True})
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.option("--freq", "-F", type=float, default=None, help="Poll passes per second")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
              help="Trace output path")
@click.option("--ui/--no-ui", default=False, help="Open the trace in a viewer while recording")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              default=None, help="YAML recorder configuration")
def record(
    command: Tuple[str, ...],
    freq: Optional[float],
    output: Optional[str],
    ui: bool,
    config_path: Optional[str],
) -> None:
    """
    Run COMMAND and record its runtime events.

    Use "--" to separate COMMAND's own options, e.g.
    ringtrace record -o t.json -- ./server --port 8080
    """
    logger = logging.getLogger("ringtrace.cli.record")

    try:
        config = load_config(config_path) if config_path else RecorderConfig()
        tracefile = Path(output) if output else config.tracefile
        if tracefile is None and not ui:
            # Without a viewer a trace inside the temp dir would be lost
            tracefile = Path(DEFAULT_TRACEFILE)
        config = config.with_overrides(freq=freq, tracefile=tracefile)
    except RingtraceError as e:
        _fail(str(e))

    viewer = make_viewer(config.viewer_command) if ui else None
    session = RecordingSession(list(command), config=config, viewer=viewer)

    try:
        result = session.run()
    except KeyboardInterrupt:
        click.echo(click.style("\n✗ Interrupted", fg="yellow"), err=True)
        sys.exit(130)
    except RingtraceError as e:
        logger.debug("Recording failed", exc_info=True)
        _fail(str(e))

    click.echo(click.style("\n═══ Recording ═══", fg="green", bold=True))
    click.echo(f"Process:   {result.pid} (exit status {result.returncode})")
    click.echo(f"Events:    {result.events}")
    click.echo(f"Rings:     {result.rings}")
    click.echo(f"Fibers:    {result.fibers}")
    if result.lost_events:
        click.echo(click.style(f"Lost:      {result.lost_events} events", fg="yellow"))
    if ui and config.tracefile is None:
        click.echo("Trace discarded (no --output given)")
    else:
        click.echo(click.style(f"\n✓ Trace saved: {result.tracefile}", fg="green"))


@cli.command()
@click.argument("events_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=DEFAULT_TRACEFILE,
              help="Trace output path")
@click.option("--pid", type=int, default=None, help="Process id (default: from file name)")
def convert(events_file: str, output: str, pid: Optional[int]) -> None:
    """
    Convert a preserved EVENTS_FILE (<pid>.events) into a trace.
    """
    try:
        result = convert_events(events_file, output, pid=pid)
    except RingtraceError as e:
        _fail(str(e))

    click.echo(f"Events:    {result.events}")
    click.echo(f"Rings:     {result.rings}")
    click.echo(f"Fibers:    {result.fibers}")
    click.echo(click.style(f"\n✓ Trace saved: {result.tracefile}", fg="green"))


@cli.command()
@click.argument("tracefile", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False),
              default=None, help="YAML recorder configuration (for viewer_command)")
def show(tracefile: str, config_path: Optional[str]) -> None:
    """
    Open TRACEFILE in the configured viewer.
    """
    try:
        config = load_config(config_path) if config_path else RecorderConfig()
    except RingtraceError as e:
        _fail(str(e))

    make_viewer(config.viewer_command)(Path(tracefile))


