"""
Command line entry point: run the API, bootstrap tables, simulate a bus
"""

import asyncio
import json
import time
import uuid

import click
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


@click.group()
def cli():
    """Bus Tracker service tools"""


@cli.command()
@click.option('--host', default=None, help='Bind address (default: HOST setting)')
@click.option('--port', default=None, type=int, help='Port (default: PORT setting)')
@click.option('--reload', is_flag=True, help='Reload on code changes')
def serve(host, port, reload):
    """Run the HTTP API with uvicorn"""
    import uvicorn
    from .config import settings

    uvicorn.run(
        "bustracker.main:app",
        host=host or settings.HOST,
        port=port or settings.PORT,
        reload=reload,
        log_level=settings.LOG_LEVEL.lower(),
    )


@cli.command('create-tables')
def create_tables():
    """Create the DynamoDB tables if they are missing"""
    from .config import settings
    from .main import build_store

    store = build_store(settings)
    created = asyncio.run(store.ensure_tables())
    if created:
        for name in created:
            click.echo(f"✓ Created table: {name}")
    else:
        click.echo("! Tables already exist")


@cli.command()
@click.option('--bus-id', default=None, help='Bus ID (default: auto-generated)')
@click.option('--name', default=None, help='Bus name used when registering')
@click.option('--url', envvar='BUSTRACKER_URL', default='http://localhost:10000', help='Service base URL')
@click.option('--token', envvar='BUSTRACKER_TOKEN', default=None, help='Bearer token')
@click.option('--register/--no-register', default=False, help='Register the bus before reporting')
@click.option('--interval', envvar='PUBLISH_INTERVAL', default=5.0, help='Report interval in seconds')
@click.option('--speed', envvar='BUS_SPEED_KMH', default=30.0, help='Bus speed in km/h')
@click.option('--count', default=0, help='Number of reports to send (0 = until interrupted)')
def simulate(bus_id, name, url, token, register, interval, speed, count):
    """Run a GPS device simulator against the API"""
    from .simulator import GPSDeviceSimulator, TrackerClient, create_sample_route

    if not bus_id:
        bus_id = f"bus-{str(uuid.uuid4())[:8]}"

    click.echo(f"Starting GPS simulator for bus: {bus_id}")
    click.echo(f"Reporting to: {url}")
    click.echo(f"Update interval: {interval} seconds")
    click.echo(f"Simulated speed: {speed} km/h")

    client = TrackerClient(url, token=token)
    if register:
        response = client.register_bus(bus_id, name or bus_id)
        if response.status_code == 409:
            click.echo(f"! Bus {bus_id} already registered")
        elif response.ok:
            click.echo(f"✓ Registered bus: {bus_id}")
        else:
            raise click.ClickException(f"Registration failed ({response.status_code}): {response.text}")

    simulator = GPSDeviceSimulator(bus_id, create_sample_route(), speed)
    click.echo("Press Ctrl+C to stop...\n")

    sent = 0
    try:
        while not count or sent < count:
            simulator.calculate_next_position(interval)
            report = simulator.get_report()
            response = client.post_location(report)
            if response.ok:
                click.echo(f"Reported: {json.dumps(report)}")
            else:
                click.echo(f"Rejected ({response.status_code}): {response.text}", err=True)
            sent += 1
            if not count or sent < count:
                time.sleep(interval)
    except KeyboardInterrupt:
        click.echo("\nStopping simulator...")


if __name__ == '__main__':
    cli()
