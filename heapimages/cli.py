"""Command Line Interface for heap-images."""

import json
from pathlib import Path
from typing import Optional

import typer

from .config import Config, load_config, parse_sizes
from .errors import HeapImagesError
from .ledger import DEFAULT_LEDGER, Ledger, read_ledger, write_ledger
from .log import console, print_error, print_message, print_success, print_warning, setup_logging
from .utils import format_file_size


app = typer.Typer(
    name="heap-images",
    help="Import photos into a heap, export resized images and sync them to S3",
    no_args_is_help=True,
    rich_markup_mode="rich"
)


LEDGER_OPTION = typer.Option(DEFAULT_LEDGER, "--config", "-c", help="Heap config file to use")
SETTINGS_OPTION = typer.Option(None, "--settings", "-s", help="Path to YAML settings file")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable verbose output")


def _setup(settings_file: Optional[str], verbose: bool) -> Config:
    config = load_config(settings_file)
    if verbose:
        config.set('output.verbosity', 2)
    setup_logging(verbose=config.verbosity >= 2)
    return config


def _show_ledger(ledger: Ledger) -> None:
    summary = ledger.summary()
    print_message(f"[blue]Config:[/blue] {ledger.path}")
    print_message(f"[blue]Name:[/blue] {summary['name']}")
    print_message(f"[blue]Copyright:[/blue] {summary['copyright'] or '-'}")
    if summary['copyright_covers']:
        print_message(f"[blue]Copyright covers:[/blue] {', '.join(summary['copyright_covers'])}")
    print_message(f"[blue]Cards:[/blue] {summary['cards']} "
                  f"({summary['photos']} photos, {summary['titles']} titles)")
    if summary['first_date']:
        print_message(f"[blue]Dates:[/blue] {summary['first_date']} to {summary['last_date']}")
    print_message(f"[blue]Photos date sorted:[/blue] {summary['images_date_sorted']}")
    print_message(f"[blue]CDN prefix:[/blue] {summary['cdn_prefix'] or '-'}")
    remote = summary['remote']
    if remote:
        print_message(f"[blue]AWS remote:[/blue] s3://{remote['bucket']}/{remote['path']}")


@app.command("import")
def import_images(
    from_dir: str = typer.Argument(..., help="The directory to read images from"),
    config_file: str = LEDGER_OPTION,
    settings_file: Optional[str] = SETTINGS_OPTION,
    verbose: bool = VERBOSE_OPTION
) -> None:
    """Import images into the active config."""
    try:
        config = _setup(settings_file, verbose)

        source = Path(from_dir)
        if not source.is_dir():
            print_error(f"Source path is not a directory: {from_dir}")
            raise typer.Exit(1)

        from .importer import PhotoImporter
        ledger = read_ledger(config_file)
        ledger, stats = PhotoImporter(config).import_images(ledger, source)
        write_ledger(ledger)

        print_message(f"[blue]Images processed:[/blue] {stats['processed']}")
        print_message(f"[blue]Images added:[/blue] {stats['added']}")
        if stats['skipped'] > 0:
            print_message(f"[yellow]Images skipped (already in config):[/yellow] {stats['skipped']}")
        if not ledger.images_date_sorted:
            print_warning("Photos in the config are not date sorted, new photos were appended.")
        print_message(f"\n[green]Image import complete![/green] config: {config_file}\n")

    except HeapImagesError as e:
        print_error(f"Failed to import: {e}")
        raise typer.Exit(1)


@app.command("export")
def export(
    cdn_prefix: Optional[str] = typer.Argument(
        None, help="Prefix for all exported files giving the public URL they are hosted at. "
                   "Defaults to the prefix stored with set-cdn-prefix."),
    sizes: Optional[str] = typer.Option(
        None, "--sizes", help="Comma separated long-side sizes for the image srcsets"),
    to_dir: Optional[str] = typer.Option(None, "--to-dir", help="A directory to write the export files to"),
    aws_bucket: Optional[str] = typer.Option(
        None, "--aws-bucket",
        help="Stage the export in a temporary directory and sync it to this bucket. "
             "BEWARE: other files under --aws-path in the bucket WILL BE DELETED."),
    aws_path: Optional[str] = typer.Option(None, "--aws-path", help="Path for this heap in the bucket"),
    json_only: bool = typer.Option(
        False, "--json-only", help="Only rebuild the exported config, reusing existing image sources"),
    config_file: str = LEDGER_OPTION,
    settings_file: Optional[str] = SETTINGS_OPTION,
    verbose: bool = VERBOSE_OPTION
) -> None:
    """Export heap."""
    try:
        config = _setup(settings_file, verbose)
        ledger = read_ledger(config_file, create_empty=False)

        cdn_prefix = cdn_prefix if cdn_prefix is not None else ledger.cdn_prefix
        if cdn_prefix is None:
            print_error("cdn-prefix is required, pass it or use set-cdn-prefix first!")
            raise typer.Exit(1)

        if to_dir is not None and aws_bucket is not None:
            print_error("Cannot use both --to-dir and --aws-bucket!")
            raise typer.Exit(1)
        if to_dir is None and aws_bucket is None and ledger.aws_remote:
            aws_bucket = ledger.aws_remote['bucket']
            aws_path = aws_path or ledger.aws_remote['path']
        if to_dir is None and aws_bucket is None:
            print_error("Either --to-dir or --aws-bucket is required!")
            raise typer.Exit(1)
        if aws_bucket is not None and aws_path is None:
            print_error("--aws-path is required when using --aws-bucket!")
            raise typer.Exit(1)

        try:
            size_list = parse_sizes(sizes) if sizes is not None else config.export_sizes
        except ValueError as e:
            print_error(f"Invalid sizes: {e}")
            raise typer.Exit(1)

        existing_config = None
        if json_only:
            from .viewer import load_heap_config
            if to_dir is not None:
                existing_config = load_heap_config(Path(to_dir) / ledger.path.name)
            else:
                existing_config = load_heap_config(f"{cdn_prefix}{ledger.path.name}")

        print_message(f"[blue]Heap:[/blue] {ledger.name}")
        print_message(f"[blue]CDN prefix:[/blue] {cdn_prefix}")
        print_message(f"[blue]Sizes:[/blue] {', '.join(str(size) for size in size_list)}")

        from .exporter import export_heap
        result = export_heap(
            ledger, cdn_prefix, size_list,
            to_dir=to_dir,
            json_only=json_only,
            existing_config=existing_config,
            jpeg_quality=config.jpeg_quality
        )

        print_message(f"[blue]Photos exported:[/blue] {result.photos}")
        print_message(f"[blue]Image files written:[/blue] {result.images_written}")
        if result.archive:
            print_message(f"[blue]Archive:[/blue] {result.archive} "
                          f"({format_file_size(result.config['archiveSize'])})")

        if aws_bucket is not None:
            from .aws_sync import sync_to_aws
            sync_result = sync_to_aws(result.target_dir, aws_bucket, aws_path, config)
            print_message(f"[blue]Uploaded:[/blue] {len(sync_result.uploaded)}, "
                          f"[blue]unchanged:[/blue] {len(sync_result.skipped)}, "
                          f"[blue]deleted:[/blue] {len(sync_result.deleted)}")
        else:
            print_message(f"[blue]Export directory:[/blue] {result.target_dir}")

        print_message("\n[green]Export complete![/green]\n")

    except HeapImagesError as e:
        print_error(f"Failed to export: {e}")
        raise typer.Exit(1)


@app.command("sync")
def sync(
    directory: str = typer.Argument(..., help="Export directory to sync"),
    aws_bucket: str = typer.Option(..., "--aws-bucket", help="Bucket to sync to"),
    aws_path: str = typer.Option(..., "--aws-path", help="Path for this heap in the bucket"),
    settings_file: Optional[str] = SETTINGS_OPTION,
    verbose: bool = VERBOSE_OPTION
) -> None:
    """Sync an existing export directory to S3, deleting stale remote files."""
    try:
        config = _setup(settings_file, verbose)
        if not Path(directory).is_dir():
            print_error(f"Not a directory: {directory}")
            raise typer.Exit(1)

        from .aws_sync import sync_to_aws
        result = sync_to_aws(directory, aws_bucket, aws_path, config, remove_dir=False)
        print_message(f"[blue]Uploaded:[/blue] {len(result.uploaded)}")
        print_message(f"[blue]Unchanged:[/blue] {len(result.skipped)}")
        print_message(f"[blue]Deleted:[/blue] {len(result.deleted)}")
        print_success("AWS sync complete")

    except HeapImagesError as e:
        print_error(f"Failed to sync: {e}")
        raise typer.Exit(1)


@app.command("info")
def info(
    config_file: str = LEDGER_OPTION,
    settings_file: Optional[str] = SETTINGS_OPTION,
    verbose: bool = VERBOSE_OPTION
) -> None:
    """Get information about the given heap."""
    try:
        _setup(settings_file, verbose)
        _show_ledger(read_ledger(config_file, create_empty=False))
    except HeapImagesError as e:
        print_error(f"Failed to read heap: {e}")
        raise typer.Exit(1)


@app.command("set-cdn-prefix")
def set_cdn_prefix(
    cdn_prefix: str = typer.Argument(..., help="The prefix to apply to image URLs"),
    config_file: str = LEDGER_OPTION,
    settings_file: Optional[str] = SETTINGS_OPTION,
    verbose: bool = VERBOSE_OPTION
) -> None:
    """Set the prefix applied to image paths to create a publicly accessible URL."""
    try:
        _setup(settings_file, verbose)
        ledger = read_ledger(config_file).with_cdn_prefix(cdn_prefix)
        _show_ledger(ledger)
        write_ledger(ledger)
    except HeapImagesError as e:
        print_error(f"Failed to set CDN prefix: {e}")
        raise typer.Exit(1)


@app.command("set-remote-aws")
def set_remote_aws(
    bucket: str = typer.Option(..., "--bucket", help="Bucket to contain the exported version of this heap"),
    path: str = typer.Option(..., "--path", help="Path within the bucket to put this exported heap into"),
    config_file: str = LEDGER_OPTION,
    settings_file: Optional[str] = SETTINGS_OPTION,
    verbose: bool = VERBOSE_OPTION
) -> None:
    """Add AWS remote parameters to the heap config.

    Export then stages files in a temporary directory and syncs them to the
    bucket using credentials from the environment (AWS_PROFILE). BEWARE: any
    files under the path that did not come from the export WILL BE DELETED.
    """
    try:
        _setup(settings_file, verbose)
        ledger = read_ledger(config_file).with_remote_aws(bucket, path)
        _show_ledger(ledger)
        write_ledger(ledger)
    except HeapImagesError as e:
        print_error(f"Failed to set AWS remote: {e}")
        raise typer.Exit(1)


@app.command("layout")
def layout(
    source: str = typer.Argument(..., help="Exported heap config file or URL"),
    mode: str = typer.Option("story", "--mode", "-m", help="Viewing mode: story or screensaver"),
    current: Optional[str] = typer.Option(None, "--current", help="Path of the active card"),
    settings_file: Optional[str] = SETTINGS_OPTION,
    verbose: bool = VERBOSE_OPTION
) -> None:
    """Print the scattered layout the viewer would render for a heap."""
    try:
        _setup(settings_file, verbose)
        from .layout import MODES
        if mode not in MODES:
            print_error(f"Unknown mode {mode!r}, use one of: {', '.join(MODES)}")
            raise typer.Exit(1)

        from .viewer import HeapView, load_heap_config
        view = HeapView(load_heap_config(source), mode=mode, current_path=current)
        console.print_json(json.dumps(view.to_dict()))
    except HeapImagesError as e:
        print_error(f"Failed to lay out heap: {e}")
        raise typer.Exit(1)


@app.command("settings")
def settings(
    show: bool = typer.Option(False, "--show", help="Show current settings"),
    settings_file: Optional[str] = SETTINGS_OPTION,
    create_default: bool = typer.Option(False, "--create-default", help="Create default settings file")
) -> None:
    """Manage heap-images settings."""
    try:
        if create_default:
            default_path = Path(settings_file or "heapimages.yaml")
            Config(default_path).save_config(default_path)
            print_success(f"Created default settings: {default_path}")
            return

        config = load_config(settings_file)

        if show:
            print_message("[blue]Current Settings:[/blue]")
            print_message(f"Supported formats: {', '.join(config.supported_formats)}")
            print_message(f"Export sizes: {', '.join(str(size) for size in config.export_sizes)}")
            print_message(f"JPEG quality: {config.jpeg_quality}")
            print_message(f"AWS region: {config.aws_region or '(from environment)'}")
            print_message(f"AWS max attempts: {config.aws_max_attempts}")
            print_message(f"Verbosity: {config.verbosity}")
        else:
            print_message("Use --show to display current settings")
            print_message("Use --create-default to create a default settings file")

    except (OSError, ValueError) as e:
        print_error(f"Failed to manage settings: {e}")
        raise typer.Exit(1)


@app.callback(invoke_without_command=True)
def main(
    version: bool = typer.Option(False, "--version", help="Show version and exit")
) -> None:
    """heap-images - import, export and sync photo heaps."""
    if version:
        from . import __version__
        print_message(f"heap-images {__version__}")
        raise typer.Exit()
