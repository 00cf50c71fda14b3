# === FILE: webdl/cli.py ===
#!/usr/bin/env python3
"""
Command line entry point of webdl.

Usage:
  webdl [OPTIONS] URLS...

Selectors (each may be given several times; comma separated lists work too):
  -sl, --links TEXT      Selector for links to follow
  -sd, --downloads TEXT  Selector for downloads
  -sp, --prints TEXT     Selector for data printed to stdout
  -st, --titles TEXT     Selector for the page title

These are equivalent:
  webdl -sl '.content a[href], .footer a[href]' URL
  webdl -sl '.content a[href]' -sl '.footer a[href]' URL

Example:
  webdl -sl '.pager a[href]' -sd 'img.photo[src]' -st h1 -d photos https://example.com/gallery
"""
import sys
from pathlib import Path

import click

from webdl import __version__
from webdl.config import load_config
from webdl.engine import Engine
from webdl.logger import init_logging, logger
from webdl.report import PrintCollector, render_json

CONTEXT_SETTINGS = dict(help_option_names=["--help"])

DOWNLOAD_FORMAT_HELP = """Jinja2 template that expands to the relative path of each download.
Pass untrusted data (title, url, referer, name, ext) through 'alphanum' or 'path'.
Fields: url, referer, index (of the download within its page), page_index,
title (of the page), name, ext. Filters: alphanum, path. Functions: href(base, ref).
Variables: nl, tab."""

PRINT_FORMAT_HELP = """Jinja2 template for data matched with --prints.
Fields: data (rows of matched values), url, referer, page_index, title."""


def print_error(message: str, code: int = 1):
    click.secho(message, fg='red', err=True)
    sys.exit(code)


@click.command(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='webdl, version %(version)s')
@click.argument('urls', nargs=-1)
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='YAML or JSON config file (default: ./webdl.yaml if present).'
)
@click.option('--links', '-sl', 'links', multiple=True, help='Selector for links (repeatable).')
@click.option('--downloads', '-sd', 'downloads', multiple=True, help='Selector for downloads (repeatable).')
@click.option('--prints', '-sp', 'prints', multiple=True, help='Selector for printing to stdout (repeatable).')
@click.option('--titles', '-st', 'titles', multiple=True, help='Selector for the title (repeatable).')
@click.option('--reverse-links', '-rl', 'reverse_links', is_flag=True,
              help='page_index in --download-format counts backwards.')
@click.option('--reverse-downloads', '-rd', 'reverse_downloads', is_flag=True,
              help='index in --download-format counts backwards.')
@click.option('--concurrency', '-j', 'concurrency', type=click.IntRange(min=1), default=None,
              help='Number of concurrent requests [default: 8].')
@click.option(
    '--directory', '-d', 'directory',
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help='Destination directory [default: .].'
)
@click.option('--download-format', '-df', 'download_format', default=None, help=DOWNLOAD_FORMAT_HELP)
@click.option('--print-format', '-pf', 'print_format', default=None, help=PRINT_FORMAT_HELP)
@click.option('--dry-run', '-n', 'dry_run', is_flag=True,
              help='Print what would be downloaded (pages are still fetched).')
@click.option('--no-progress', '-np', 'no_progress', is_flag=True, help='Do not show progress.')
@click.option(
    '--json', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Write print tables to this JSON file instead of stdout.'
)
@click.option(
    '--log-level', 'log_level',
    default='WARNING', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level.'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Also write logs to this file.'
)
def cli(urls, config_path, links, downloads, prints, titles, reverse_links, reverse_downloads,
        concurrency, directory, download_format, print_format, dry_run, no_progress,
        json_output, log_level, log_file):
    """Crawl URLS, follow links, print matched data and download matched resources."""
    init_logging(level=log_level, log_file=str(log_file) if log_file else None)
    try:
        cfg = load_config(config_path).with_overrides(
            urls=urls,
            links=links,
            downloads=downloads,
            prints=prints,
            titles=titles,
            reverse_links=reverse_links or None,
            reverse_downloads=reverse_downloads or None,
            concurrency=concurrency,
            directory=directory,
            download_format=download_format,
            print_format=print_format,
            dry_run=dry_run or None,
            no_progress=no_progress or None,
        )
    except (OSError, ValueError, TypeError) as e:
        print_error(f'Error loading configuration: {e}')

    if not cfg.urls:
        raise click.UsageError('no URLs given')

    collector = PrintCollector() if json_output else None
    try:
        engine = Engine(cfg, collector=collector)
        stats = engine.start()
    except KeyboardInterrupt:
        print_error('Interrupted', code=130)
    except Exception as e:
        print_error(str(e) or type(e).__name__)

    logger.info(
        "Done: %d page(s), %d download(s), %d failed, %d skipped",
        stats.pages, stats.downloads, stats.failed, stats.skipped,
    )

    if json_output:
        try:
            saved = render_json(collector.entries, json_output)
            click.echo(f'JSON report: {saved}', err=True)
        except OSError as e:
            print_error(f'Error saving JSON: {e}')


main = cli

if __name__ == "__main__":
    cli()
