#!/usr/bin/env python
"""
Setup script for configuring Relay integrations.
Adds integrations, checks their connection and shows the fields forms can be mapped onto.
"""

import asyncio
import logging
from datetime import datetime, timezone

import typer
from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table
from sqlmodel import select

from app.core.database import create_db_and_tables, get_session
from app.exceptions import ConfigurationError, ConnectionCheckError
from app.integrations.base import CRMIntegration
from app.integrations.models import Integration
from app.integrations.registry import INTEGRATION_CLASSES, build_integration

console = Console()
app = typer.Typer()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _load(integration_id: int) -> tuple[Integration, CRMIntegration]:
    with get_session() as db:
        integration = db.get(Integration, integration_id)
    if not integration:
        console.print(f'[red]Integration {integration_id} not found[/red]')
        raise typer.Exit(1)
    return integration, build_integration(integration.kind, integration.settings)


def _save_settings(integration: Integration, crm: CRMIntegration) -> Integration:
    resolved = asyncio.run(crm.resolve())
    with get_session() as db:
        integration.settings = resolved.model_dump(mode='json')
        integration.updated = datetime.now(timezone.utc)
        integration = db.create(integration)
    return integration


def display_settings(integration: Integration):
    """Display an integration's settings in a table, secrets masked"""
    crm = build_integration(integration.kind, integration.settings)
    table = Table(title=f'{integration.name} ({crm.title})')
    table.add_column('Setting', style='cyan')
    table.add_column('Value', style='green')
    for key, value in crm.public_settings().items():
        table.add_row(key, '' if value is None else str(value))
    console.print(table)


@app.command()
def add():
    """Add an integration, resolving pipeline/stage/owner names before it's saved"""
    create_db_and_tables()
    kind = Prompt.ask('Integration type', choices=list(INTEGRATION_CLASSES))
    name = Prompt.ask('Name', default=INTEGRATION_CLASSES[kind].title)

    settings_model = INTEGRATION_CLASSES[kind].settings_model
    values = {}
    for field_name, field_info in settings_model.model_fields.items():
        if field_name.endswith('_id') and field_name != 'account_id':
            # Filled in by the resolver
            continue
        values[field_name] = Prompt.ask(field_name, default=field_info.default or '')

    crm = build_integration(kind, values)
    integration = _save_settings(Integration(name=name, kind=kind), crm)
    console.print(f'[green]✓ Saved integration {integration.id}[/green]')
    display_settings(integration)


@app.command()
def resolve(integration_id: int):
    """Re-run the pipeline/stage/owner lookups for an integration and save the result"""
    integration, crm = _load(integration_id)
    integration = _save_settings(integration, crm)
    display_settings(integration)


@app.command()
def check(integration_id: int):
    """Check that an integration's credentials work"""
    integration, crm = _load(integration_id)
    try:
        connected = asyncio.run(crm.check_connection())
    except (ConfigurationError, ConnectionCheckError) as e:
        console.print(f'[red]✗ {e}[/red]')
        raise typer.Exit(1)
    if connected:
        console.print(f'[green]✓ Connected to {crm.title}[/green]')
    else:
        console.print(f'[red]✗ {crm.title} did not accept the connection[/red]')
        raise typer.Exit(1)


@app.command()
def fields(integration_id: int):
    """Show the fields form fields can be mapped onto"""
    integration, crm = _load(integration_id)
    descriptors = asyncio.run(crm.fetch_fields())

    table = Table(title=f'{integration.name} fields')
    table.add_column('Key', style='cyan')
    table.add_column('Label', style='green')
    table.add_column('Type', style='yellow')
    table.add_column('Required')
    for descriptor in descriptors:
        table.add_row(descriptor.key, descriptor.label, descriptor.type.value, '✓' if descriptor.required else '')
    console.print(table)


@app.command(name='list')
def list_integrations():
    """List the configured integrations"""
    with get_session() as db:
        integrations = db.exec(select(Integration).order_by(Integration.id)).all()
    if not integrations:
        console.print('[yellow]No integrations configured, add one with `add`[/yellow]')
        return
    table = Table(title='Integrations')
    table.add_column('ID', style='cyan')
    table.add_column('Name', style='green')
    table.add_column('Type')
    for integration in integrations:
        table.add_row(str(integration.id), integration.name, integration.kind)
    console.print(table)


@app.command()
def delete(integration_id: int):
    """Delete an integration"""
    integration, _ = _load(integration_id)
    if not Confirm.ask(f'Delete {integration}?'):
        raise typer.Exit(0)
    with get_session() as db:
        db.delete(db.get(Integration, integration_id))
        db.commit()
    console.print(f'[green]✓ Deleted integration {integration_id}[/green]')


if __name__ == '__main__':
    app()
