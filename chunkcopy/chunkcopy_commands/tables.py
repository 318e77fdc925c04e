import click

from chunkcopy import api
from chunkcopy.chunkcopy_commands import AliasedGroup
from chunkcopy.core.utils import safe_print


@click.group(cls=AliasedGroup)
def tables():
    """Table inspection commands"""
    pass


def connection_options(func):
    func = click.option("-e", "--env-file", default=None, help="Path to a .env file with the settings")(func)
    func = click.option("-d", "--database-url", default=None, help="Database URL (default: DATABASE_URL)")(func)
    return func


@tables.command("list")
@connection_options
@click.option("-s", "--schema", "schemas", multiple=True, help="Schema to list; repeat for several (default: all owned schemas)")
def list_tables(env_file, database_url, schemas):
    """List tables with their size and number of columns."""
    result = api.list_tables(schemas=list(schemas), database_url=database_url, env_file=env_file)
    if not result.success:
        raise click.ClickException(result.message)

    if not result.data:
        safe_print("No tables found.")
        return

    for schema, items in result.data.items():
        safe_print(f"{schema}:")
        for item in items:
            safe_print(
                f"  {item['tablename']:<40} {item.get('table_size') or '':>10}  "
                f"{item.get('number_of_columns', 0)} column(s)"
            )


@tables.command()
@connection_options
@click.argument("names", nargs=-1, required=True)
def info(env_file, database_url, names):
    """Show row count, size and columns of SCHEMA.TABLE names."""
    result = api.get_tables_info(list(names), database_url=database_url, env_file=env_file)
    if not result.success:
        raise click.ClickException(result.message)

    for name, item in result.data.items():
        safe_print(f"{name}: {item['count_of_rows']:,} row(s), {item['table_size'] or 'unknown size'}")
        for col in item['columns']:
            length = f"({col['length']})" if col['length'] else ""
            safe_print(f"  {col['column_name']} {col['data_type'] or ''}{length}")


@tables.command()
@connection_options
@click.argument("schema")
@click.argument("table")
@click.option("--no-lengths", is_flag=True, help="Skip probing the maximum length of unbounded text columns")
def columns(env_file, database_url, schema, table, no_lengths):
    """Show the migratable columns of SCHEMA TABLE."""
    result = api.get_table_columns(
        schema,
        table,
        resolve_text_lengths=not no_lengths,
        database_url=database_url,
        env_file=env_file,
    )
    if not result.success:
        raise click.ClickException(result.message)

    for col in result.data:
        length = f"({col['length']})" if col['length'] else ""
        safe_print(f"{col['column_name']} {col['data_type'] or ''}{length}")


tables.aliases = {
    'ls': 'list',
    'describe': 'info',
    'cols': 'columns',
}
