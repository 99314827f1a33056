# marketplace/cli/create_tables.py
import asyncio

import click

from marketplace import models  # noqa: F401  registers every table on Base.metadata
from marketplace.database import Base, engine


@click.command()
@click.option('--drop', is_flag=True, help='Drop existing tables first')
def create_tables(drop):
    """Create all database tables directly using SQLAlchemy"""

    async def _create_tables():
        async with engine.begin() as conn:
            if drop:
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()
        click.echo("All tables created successfully!")

    asyncio.run(_create_tables())


if __name__ == "__main__":
    create_tables()
