# marketplace/cli/issue_token.py
import click

from marketplace.core.enums import Role
from marketplace.core.security import issue_token as _issue_token


@click.command()
@click.option('--account-id', type=int, required=True)
@click.option('--role', type=click.Choice([r.value for r in Role]), required=True)
@click.option('--ttl', type=int, default=None, help='Lifetime in seconds (defaults to TOKEN_TTL_SECONDS)')
def issue_token(account_id, role, ttl):
    """Print a bearer token for an account, for operators and local testing"""
    click.echo(_issue_token(account_id, Role(role), ttl_seconds=ttl))


if __name__ == "__main__":
    issue_token()
