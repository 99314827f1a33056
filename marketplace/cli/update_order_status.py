# marketplace/cli/update_order_status.py
import asyncio

import click

from marketplace.core.enums import OrderStatus
from marketplace.core.exceptions import BaseServiceError
from marketplace.database import async_session
from marketplace.services.order_service import OrderService


@click.command()
@click.option('--order-id', type=int, required=True, help='Order ID')
@click.option('--status', type=click.Choice([s.value for s in OrderStatus]), required=True)
@click.option('--description', default=None, help='Tracking entry text')
def update_order_status(order_id, status, description):
    """Manually move an order through its lifecycle (same rules as the API)"""

    async def _update():
        async with async_session() as session:
            order = await OrderService(session).update_status(order_id, status, description)
            click.echo(f"Order {order.id} is now '{order.status.value}'")

    try:
        asyncio.run(_update())
    except BaseServiceError as e:
        raise click.ClickException(e.message)


if __name__ == "__main__":
    update_order_status()
