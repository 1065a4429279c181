"""Flask CLI commands, registered on the app by the factory."""

import json
from datetime import datetime, timezone

import click

from transformo.billing.access import evaluate
from transformo.billing.stores import SqlSubscriptionStore
from transformo.extensions import db
from transformo.models import Business


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all database tables"""
        db.create_all()
        click.echo("✅ Database initialized successfully!")

    @app.cli.command("create-business")
    @click.argument("name")
    def create_business(name):
        """Create a business (tenant) and print its id"""
        business = Business(business_name=name)
        db.session.add(business)
        db.session.commit()
        click.echo(business.id)

    @app.cli.command("access-status")
    @click.argument("business_id")
    def access_status(business_id):
        """Print the current access decision for a business"""
        if db.session.get(Business, business_id) is None:
            raise click.ClickException(f"Business {business_id} not found")

        record = SqlSubscriptionStore().get_by_business_id(business_id)
        decision = evaluate(record, datetime.now(timezone.utc))
        click.echo(json.dumps(decision.to_dict(), indent=2))
