import sys
import click
import logging
import uvicorn
from pydantic import ValidationError

from .config import Settings

logger = logging.getLogger(__name__)

GRACEFUL_SHUTDOWN_TIMEOUT = 30
KEEP_ALIVE_TIMEOUT = 120

def load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        click.echo(f'Failed to load configuration:\n{e}', err=True)
        sys.exit(1)

@click.command()
def serve():
    """
    Run the Terraform state backend server on LISTEN_ADDR.
    """
    settings = load_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    from .init import create_app
    app = create_app(settings)

    logger.info(f'Starting server on {settings.LISTEN_ADDR}')
    uvicorn.run(
        app,
        host=settings.listen_host,
        port=settings.listen_port,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=False,   # requests are logged by the backend itself
        timeout_keep_alive=KEEP_ALIVE_TIMEOUT,
        timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_TIMEOUT,
    )
    logger.info('Server stopped')

@click.command('check-config')
def check_config():
    """
    Validate the environment configuration and print the effective settings, without secrets.
    """
    settings = load_settings()
    click.echo(f'Gitea:     {settings.GITEA_URL}/{settings.GITEA_OWNER}/{settings.GITEA_REPO} (branch: {settings.GITEA_BRANCH})')
    click.echo(f'Listen:    {settings.listen_host}:{settings.listen_port}')
    click.echo(f'Auth:      {"enabled" if settings.auth_enabled else "disabled"}')
    click.echo(f'Max body:  {settings.MAX_BODY_SIZE_MB} MB')
    click.echo(f'Log level: {settings.LOG_LEVEL}')

@click.group()
def cli():
    """py-tfstate Command Line Interface"""
    pass
cli.add_command(serve)
cli.add_command(check_config)
