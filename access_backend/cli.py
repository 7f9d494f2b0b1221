import asyncio
import sys

from dataclasses import dataclass
from typing import Annotated

import cappa
import granian

from cappa.output import error_format
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table
from rich.text import Text
from watchfiles import PythonFilter

from access_backend import __version__
from access_backend.core.conf import settings
from access_backend.database.db import create_tables, drop_tables
from access_backend.src.lifecycle.shared.exceptions import LifecycleError
from access_backend.src.lifecycle.trials import trial_sweep

console = Console()

output_help = '\nFor more information, try "[cyan]--help[/]"'


class ReloadFilter(PythonFilter):
    """Also reload on config file changes"""

    def __init__(self) -> None:
        super().__init__(extra_extensions=['.env', '.json', '.toml'])


def _flag(value: object) -> tuple[str, str]:
    return ('configured', 'green') if value else ('missing', 'red')


def service_overview() -> Text:
    """Database and upstream configuration, secrets reduced to configured/missing."""
    overview = Text()
    overview.append('Database', style='bold green')
    overview.append(f'\n  {settings.DATABASE_TYPE}: ')
    overview.append(settings.DATABASE_SCHEMA, style='yellow')
    overview.append(' (tables auto-created)' if settings.DATABASE_AUTO_CREATE else '', style='dim')

    overview.append('\n\nUpstreams', style='bold green')
    for label, value in (
        ('Stripe secret key', settings.STRIPE_SECRET_KEY),
        ('Stripe webhook secret', settings.STRIPE_WEBHOOK_SECRET),
        ('Axie Studio URL', settings.AXIESTUDIO_APP_URL),
        ('Cron secret', settings.CRON_SECRET),
    ):
        status, style = _flag(value)
        overview.append(f'\n  {label}: ')
        overview.append(status, style=style)
    return overview


async def rebuild_tables(assume_yes: bool) -> None:
    console.print(Panel(service_overview(), title=f'access-backend v{__version__} init', border_style='cyan'))
    if not assume_yes and not Confirm.ask('Drop and recreate every table? All data is lost', default=False):
        console.print('Nothing changed', style='yellow')
        return

    try:
        await drop_tables()
        await create_tables()
    except Exception as e:
        raise cappa.Exit(f'Table rebuild failed: {e}', code=1)
    console.print('Tables recreated', style='bold green')


def serve(host: str, port: int, reload: bool, workers: int) -> None:  # noqa: FBT001
    banner = service_overview()
    banner.append('\n\nAPI: ', style='bold cyan')
    banner.append(f'http://{host}:{port}{settings.FASTAPI_API_V1_PATH}', style='blue')
    banner.append(f'  (Python {sys.version_info.major}.{sys.version_info.minor}, {settings.ENVIRONMENT})', style='dim')
    if settings.FASTAPI_OPENAPI_URL:
        banner.append(f'\nDocs: http://{host}:{port}{settings.FASTAPI_DOCS_URL}', style='magenta')

    console.print(Panel(banner, title=f'access-backend v{__version__}', border_style='purple'))
    granian.Granian(
        target='access_backend.main:app',
        interface='asgi',
        address=host,
        port=port,
        reload=reload,
        reload_filter=ReloadFilter,
        workers=workers,
    ).serve()


async def sweep() -> None:
    console.print('Running trial sweep...', style='bold cyan')
    try:
        result = await trial_sweep.run()
    except LifecycleError as e:
        raise cappa.Exit(f'Trial sweep failed: {e.message}', code=1)

    console.print(
        f"converted={result['converted']} expired={result['expired']} scheduled={result['scheduled']} "
        f"deactivated={result.get('deactivated', 0)} "
        f"candidates={result['total_candidates']} protected={result['protected_users']}",
        style='white',
    )
    if result['results']:
        deletions = Table(show_header=True, header_style='bold magenta')
        deletions.add_column('User ID', style='cyan', no_wrap=True)
        deletions.add_column('Deleted', justify='center')
        deletions.add_column('Failed steps / error', style='yellow')
        for row in result['results']:
            detail = row.get('error') or ', '.join(row.get('failed_steps') or [])
            deletions.add_row(row['user_id'], 'yes' if row['success'] else 'no', detail)
        console.print(deletions)
    console.print('Trial sweep completed', style='bold green')


@cappa.command(help='Drop and recreate the database tables', default_long=True)
@dataclass
class Init:
    yes: Annotated[bool, cappa.Arg(short='-y', default=False, help='Skip the confirmation prompt')] = False

    async def __call__(self) -> None:
        await rebuild_tables(self.yes)


@cappa.command(help='Serve the API with granian', default_long=True)
@dataclass
class Run:
    host: Annotated[str, cappa.Arg(default='127.0.0.1', help='Bind address, `0.0.0.0` to accept remote clients')]
    port: Annotated[int, cappa.Arg(default=8000, help='Bind port')]
    reload: Annotated[bool, cappa.Arg(default=False, help='Restart on source changes (single worker only)')]
    workers: Annotated[int, cappa.Arg(default=1, help='Worker processes')]

    def __call__(self) -> None:
        if self.reload and self.workers > 1:
            raise cappa.Exit('--reload cannot be combined with more than one worker', code=1)
        serve(host=self.host, port=self.port, reload=self.reload, workers=self.workers)


@cappa.command(help='Run the trial sweep once, as the scheduled trial-cleanup call does', default_long=True)
@dataclass
class Sweep:
    async def __call__(self) -> None:
        await sweep()


@cappa.command(name='access-backend', help='Access backend command line interface', default_long=True)
@dataclass
class AccessCli:
    subcmd: cappa.Subcommands[Init | Run | Sweep]


def main() -> None:
    output = cappa.Output(error_format=f'{error_format}\n{output_help}')
    asyncio.run(cappa.invoke_async(AccessCli, version=__version__, output=output))


if __name__ == '__main__':
    main()
