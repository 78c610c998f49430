import logging
import sys
from typing import Optional

import click

from .constants import DITHER_PATTERNS, HYBRID_LOW, HYBRID_HIGH, MAX_SAMPLE, DitherPattern
from .errors import InkdashError

logger = logging.getLogger(__name__)


@click.group()
@click.option(
    '--log-level',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    default='INFO',
    show_default=True,
    help='Logging verbosity.'
)
def main(log_level: str) -> None:
    """Monochrome e-paper dashboard: dithering, 1-bit BMP encoding and a cached image server."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


@main.command()
@click.option(
    '--config', '-c', 'config_path',
    type=click.Path(dir_okay=False),
    default=None,
    help='YAML configuration file. Defaults to $INKDASH_CONFIG.'
)
@click.option('--host', default=None, help='Override server.host from the configuration.')
@click.option('--port', type=int, default=None, help='Override server.port from the configuration.')
def serve(config_path: Optional[str], host: Optional[str], port: Optional[int]) -> None:
    """Render all images once, keep them refreshed and serve them over HTTP."""
    from .app import build_dashboard
    from .config import load_config
    from .server import create_app

    try:
        settings = load_config(config_path)
    except InkdashError as e:
        click.secho(f"Error: {e}", fg='red', err=True)
        sys.exit(1)

    dashboard = build_dashboard(settings)
    logger.info("initial render of %d slots", len(dashboard.scheduler.renderers))
    dashboard.scheduler.start(initial_pass=True, wait=True)

    app = create_app(dashboard)
    try:
        app.run(host=host or settings.host, port=port or settings.port, threaded=True)
    finally:
        dashboard.scheduler.stop(timeout=settings.raster_timeout + settings.fetch_timeout)


@main.command()
@click.argument('image', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--pattern',
    type=click.Choice(DITHER_PATTERNS, case_sensitive=False),
    default='floyd-steinberg',
    show_default=True,
    help='Dithering pattern to use.'
)
@click.option('--invert', is_flag=True, help='Swap black and white after dithering.')
@click.option(
    '--low',
    type=click.FloatRange(0, MAX_SAMPLE),
    default=HYBRID_LOW,
    show_default=True,
    help='Hybrid patterns: luminance below this is always black (0-65535).'
)
@click.option(
    '--high',
    type=click.FloatRange(0, MAX_SAMPLE),
    default=HYBRID_HIGH,
    show_default=True,
    help='Hybrid patterns: luminance above this is always white (0-65535).'
)
@click.option('--direct', is_flag=True, help='No dithering: cut at 50% luminance.')
@click.option(
    '--output', '-o',
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help='Output file path. Defaults to <image>-mono.bmp.'
)
def convert(
    image: str,
    pattern: DitherPattern,
    invert: bool,
    low: float,
    high: float,
    direct: bool,
    output: Optional[str]
) -> None:
    """Convert IMAGE to a 1-bit monochrome BMP."""
    from .core.pipeline import convert_file

    if low > high:
        click.secho(f"Error: --low ({low}) must not exceed --high ({high})", fg='red', err=True)
        sys.exit(1)
    try:
        output_path = convert_file(
            image,
            output_path=output,
            pattern=pattern.lower(),
            invert=invert,
            low=low,
            high=high,
            direct=direct,
        )
        click.secho(f"✓ Bitmap saved to: {output_path}", fg='green')
    except (OSError, InkdashError) as e:
        click.secho(f"Error: {e}", fg='red', err=True)
        sys.exit(1)


@main.command()
@click.argument('bitmap', type=click.Path(exists=True, dir_okay=False))
def inspect(bitmap: str) -> None:
    """Print the header fields of a BMP file."""
    from pathlib import Path
    from .processing.bitmap import read_header

    data = Path(bitmap).read_bytes()
    try:
        header = read_header(data)
    except InkdashError as e:
        click.secho(f"Error: {e}", fg='red', err=True)
        sys.exit(1)

    for name, value in vars(header).items():
        click.echo(f"{name:>18}: {value}")
    if header.file_size != len(data):
        click.secho(f"warning: header says {header.file_size} bytes, file has {len(data)}", fg='yellow')


@main.command()
@click.argument('image', type=click.Path(exists=True, dir_okay=False), required=False)
def tui(image: Optional[str]) -> None:
    """Interactive dithering preview."""
    from .tui.app import DitherApp

    DitherApp(image).run()


if __name__ == '__main__':
    main()
