import os

import click

from chunkcopy import __version__
from chunkcopy.chunkcopy_commands import AliasedGroup, migrate, tables
from chunkcopy.chunkcopy_utils import variables
from chunkcopy.core.utils import configure_logging


@click.group(cls=AliasedGroup)
@click.version_option(version=__version__, prog_name="chunkcopy")
@click.option("--log-level", default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
              help="Logging level (default: LOG_LEVEL or INFO)")
@click.option("--log-file", default=None, help=f"Also write logs to this file (e.g. {variables.LOG_DIR}/chunkcopy.log)")
@click.pass_context
def cli(ctx, log_level, log_file):
    """Chunked table migration across a pool of worker processes"""
    configure_logging(log_level or os.getenv("LOG_LEVEL", "INFO"), log_file)
    # worker processes rebuild their logging from these
    ctx.obj = {'log_level': log_level, 'log_file': log_file}


cli.add_command(migrate.migrate)
cli.add_command(tables.tables)

cli.aliases = {
    'm': 'migrate',
    't': 'tables',
}

if __name__ == '__main__':
    cli()
