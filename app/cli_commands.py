"""
Flask CLI commands for catalog and database management.

Commands:
- flask init-db: Create the database tables
- flask list-schemes: Show active promotional schemes
- flask refresh-catalog: Drop the cached catalog snapshot
"""

import click
from app.database import create_tables, get_session
from app.models import Scheme
from app.services.catalog_service import invalidate_catalog_cache


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        create_tables()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('list-schemes')
    def list_schemes():
        """Print the active promotional schemes."""
        schemes = (
            get_session().query(Scheme)
            .filter(Scheme.is_active == True)  # noqa: E712
            .order_by(Scheme.scheme_id)
            .all()
        )
        if not schemes:
            click.echo(click.style('No active schemes.', fg='yellow'))
            return

        for scheme in schemes:
            line = f'{scheme.scheme_id:>3}  [{scheme.scheme_scope}]  {scheme.scheme_text}'
            if scheme.scheme_min_price is not None:
                line += f'  (min {scheme.scheme_min_price})'
            click.echo(line)

    @app.cli.command('refresh-catalog')
    def refresh_catalog():
        """Invalidate the cached catalog snapshot."""
        invalidate_catalog_cache()
        click.echo(click.style('Catalog cache invalidated.', fg='green'))
