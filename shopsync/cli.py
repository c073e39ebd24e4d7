"""Flask CLI commands for admin and sync operations."""
import click


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables (development; use `flask db upgrade` elsewhere)."""
        from shopsync.extensions import db

        db.create_all()
        click.echo("Database initialized.")

    @app.cli.command("import-products")
    @click.option("--first", default=None, type=int, help="Products per page (1-250)")
    @click.option("--cursor", default=None, help="Resume after this page cursor")
    @click.option("--all", "import_all", is_flag=True, help="Keep paging until the end")
    def import_products(first, cursor, import_all):
        """Import products from Shopify, one page per call."""
        from flask import current_app
        from shopsync.errors import SyncError
        from shopsync.services.import_service import import_products as run_import

        first = first or current_app.config["IMPORT_PAGE_SIZE"]
        totals = {"imported": 0, "updated": 0}
        while True:
            try:
                result = run_import(first=first, cursor=cursor)
            except SyncError as e:
                raise click.ClickException(e.message)
            totals["imported"] += result.imported
            totals["updated"] += result.updated
            click.echo(
                f"Page: {result.imported} new, {result.updated} updated "
                f"(cursor {result.end_cursor or '-'})"
            )
            if not (import_all and result.has_next_page and result.end_cursor):
                break
            cursor = result.end_cursor

        click.echo(f"Imported {totals['imported']}, updated {totals['updated']}.")
        if result.has_next_page and not import_all:
            click.echo(f"More products available: --cursor {result.end_cursor}")

    @app.cli.command("export-product")
    @click.argument("product_id", type=int)
    @click.option("--force-create", is_flag=True, help="Create a new Shopify product")
    def export_product(product_id, force_create):
        """Push a single product to Shopify."""
        from shopsync.errors import SyncError
        from shopsync.services.product_service import get_product
        from shopsync.services.sync_service import export_product as run_export

        product = get_product(product_id)
        if product is None:
            raise click.ClickException(f"Product {product_id} not found.")
        try:
            result = run_export(product, force_create=force_create)
        except SyncError as e:
            raise click.ClickException(e.message)
        click.echo(
            f"Exported product {product_id} as {result.gid} "
            f"({result.synced_variants} variants)"
        )

    @app.cli.command("validate-shopify")
    def validate_shopify():
        """Check the configured Shopify credentials."""
        from shopsync.services.shopify_gateway import get_gateway

        if not get_gateway().validate_credentials():
            raise click.ClickException("Shopify connection failed.")
        click.echo("Shopify connection is valid.")

    @app.cli.command("sync-status")
    def sync_status():
        """Show how many products are synced to Shopify."""
        from shopsync.services.sync_service import sync_status as get_status

        s = get_status()
        click.echo(f"Status: {s['status']}")
        click.echo(f"  total: {s['total_products']}")
        click.echo(f"  synced: {s['synced_products']}")
        click.echo(f"  pending: {s['pending_products']}")
        click.echo(f"  last update: {s['last_sync_at'] or '-'}")
