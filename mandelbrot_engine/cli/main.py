"""
Command-line interface for the rendering engine.

Headless access to the engine: render a single frame to an image file,
export the color palette, or check a configuration file.
"""

import click
import sys
import threading
from pathlib import Path
import logging

from .. import __version__
from ..api import RenderController, RenderParameters
from ..exceptions import RenderFailed
from ..io.config import ConfigManager, load_config_from_args
from ..rendering.coloring import Palette
from ..rendering.image_output import ImageExporter, RenderMetadata

logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--config', type=click.Path(exists=True), help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress most output')
@click.pass_context
def main(ctx, version, config, verbose, quiet):
    """
    Mandelbrot Engine - progressive escape-time renderer.

    Renders supersampled, smoothly colored views of the Mandelbrot set
    using the same background engine an interactive viewer would drive.
    """
    # Setup logging
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO,
                            format='%(levelname)s: %(message)s')

    if version:
        click.echo(f"Mandelbrot Engine v{__version__}")
        click.echo(f"Python: {sys.version}")

        if ctx.invoked_subcommand is None:
            sys.exit(0)

    ctx.ensure_object(dict)
    ctx.obj['config_file'] = config
    ctx.obj['verbose'] = verbose


def _fail(ctx, error: Exception):
    click.echo(f"Error: {error}", err=True)
    if ctx.obj.get('verbose'):
        import traceback
        traceback.print_exc()
    sys.exit(1)


@main.command()
@click.argument('output', type=click.Path())
@click.option('--center-x', type=float, default=-0.5, show_default=True, help='Real part of the view center')
@click.option('--center-y', type=float, default=0.0, show_default=True, help='Imaginary part of the view center')
@click.option('--scale', type=float, default=0.005, show_default=True, help='Complex-plane units per pixel')
@click.option('--width', '-w', type=int, default=400, show_default=True, help='Image width')
@click.option('--height', '-h', type=int, default=300, show_default=True, help='Image height')
@click.option('--supersample', '-s', type=int, default=1, show_default=True, help='Samples per pixel')
@click.option('--max-iter', type=int, default=0, show_default=True,
              help='Iteration budget (0 = derive from scale)')
@click.option('--seed', type=int, help='Seed for the supersampling offsets')
@click.option('--timeout', type=float, default=300.0, show_default=True,
              help='Seconds to wait for the frame')
@click.pass_context
def render(ctx, output, center_x, center_y, scale, width, height, supersample, max_iter, seed, timeout):
    """
    Render a single frame.

    OUTPUT: Output image file path (.png, .tiff or .jpg)
    """
    try:
        config = load_config_from_args(ctx.obj.get('config_file'))
        if seed is not None:
            config.seed = seed
            config.validate()

        params = RenderParameters(center_x, center_y, scale, supersample, (width, height), max_iter)
        params.validate()

        result = {}
        done = threading.Event()

        def on_frame(image, scale_factor, elapsed_ms):
            result['image'] = image
            result['elapsed_ms'] = elapsed_ms
            done.set()

        def on_error(error: RenderFailed):
            result['error'] = error
            done.set()

        click.echo(f"Rendering {width}x{height} at ({center_x}, {center_y}), scale {scale}...")

        with RenderController(on_frame=on_frame, on_error=on_error, config=config) as controller:
            controller.render(center_x, center_y, scale, supersample, (width, height), max_iter)
            finished = done.wait(timeout)
            seed_used = controller.last_seed

        if not finished:
            click.echo(f"Error: Render did not finish within {timeout:.0f}s", err=True)
            sys.exit(1)

        if 'error' in result:
            _fail(ctx, result['error'])

        metadata = RenderMetadata(
            center=(center_x, center_y),
            scale_factor=scale,
            resolution=(width, height),
            max_iterations=params.resolve_max_iterations(),
            supersample_count=supersample,
            render_time_ms=result['elapsed_ms'],
            seed=seed_used,
            software_version=__version__,
        )
        ImageExporter().save_image(result['image'], Path(output), metadata)

        click.echo(f"Render complete: {result['elapsed_ms'] / 1000:.2f}s")
        click.echo(f"Saved: {output}")

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('output', type=click.Path())
@click.option('--size', type=int, help='Number of palette entries')
@click.pass_context
def palette(ctx, output, size):
    """
    Export the color palette as a GIMP palette file.

    OUTPUT: Output .gpl file path
    """
    try:
        config = load_config_from_args(ctx.obj.get('config_file'))
        table = Palette(size or config.palette_size)
        table.save_to_file(Path(output))
        click.echo(f"Saved {len(table)} colors: {output}")

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('config_file', type=click.Path(exists=True))
@click.pass_context
def validate_config(ctx, config_file):
    """Validate a configuration file."""
    try:
        config = ConfigManager().load_config(config_file)
        click.echo(f"Configuration valid: {config_file}")
        for key, value in config.to_dict().items():
            click.echo(f"  {key}: {value}")

    except Exception as e:
        _fail(ctx, e)


if __name__ == '__main__':
    main()
