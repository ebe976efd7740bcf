# storefront/cli.py
import click
from flask.cli import with_appcontext
from werkzeug.security import generate_password_hash
from .extensions import db
from .model import User
from .services.catalog_service import export_frame


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
@click.option("--phone", "phone_number", default=None)
@with_appcontext
def create_admin(email, password, name, phone_number):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    if len(password) < 6:
        click.echo("Password must be at least 6 characters"); return
    u = User(
        email=email,
        name=name.strip(),
        phone_number=(phone_number or "").strip() or None,
        password_hash=generate_password_hash(password),
        role="admin",
        is_verified=True,
    )
    db.session.add(u); db.session.commit()
    click.echo(f"Admin created: {u.id} {u.email}")


@click.command("export-products")
@click.option("--out", "out_path", default="products.xlsx", show_default=True)
@with_appcontext
def export_products(out_path):
    df = export_frame()
    df.to_excel(out_path, index=False, sheet_name="Products")
    click.echo(f"Exported {len(df)} products to {out_path}")


def register_cli(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(export_products)
