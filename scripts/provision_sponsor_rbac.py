"""
Rebuild (or tear down) sponsor-scoped roles and permissions.

Run this script after database initialization, or whenever the RBAC authority
has drifted from sponsor membership, to:
- Recreate the owner/editor/staff roles of each sponsor
- Recreate the four document permissions of each sponsor
- Attach the roles to the sponsor's members

Usage:
    uv run python -m scripts.provision_sponsor_rbac
    uv run python -m scripts.provision_sponsor_rbac --sponsor-id 01HZX...
    uv run python -m scripts.provision_sponsor_rbac --sponsor-id 01HZX... --teardown
"""
import argparse
import asyncio
from typing import Optional, Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.sponsors.exceptions import SponsorNotFound
from app.features.sponsors.members import find_members
from app.features.sponsors.models import Sponsor
from app.features.sponsors.rbac import create_rbac_rules, destroy_rbac_rules
from app.features.sponsors.schemas import SponsorMemberResponse, SponsorResponse
from app.features.sponsors.service import find_sponsor
from app.utils import get_logger


log = get_logger(__name__)


async def load_sponsors(db: AsyncSession, sponsor_id: Optional[str] = None) -> list[Sponsor]:
    """
    Get the sponsors to process.

    Returns:
        The single sponsor named by ``sponsor_id``, or every live sponsor
    """
    if sponsor_id:
        sponsor = await find_sponsor(db, sponsor_id)
        if sponsor is None:
            raise SponsorNotFound(f"Invalid Sponsor ID {sponsor_id}")
        return [sponsor]

    result = await db.execute(
        select(Sponsor).where(Sponsor.deleted_at.is_(None)).order_by(Sponsor.id)
    )
    return list(result.scalars().all())


async def provision(
    db: AsyncSession,
    sponsor_id: Optional[str] = None,
    teardown: bool = False
) -> list[Sponsor]:
    """
    Provision (or tear down) RBAC rules for the selected sponsors.

    Returns:
        The sponsors that were processed
    """
    sponsors = await load_sponsors(db, sponsor_id)
    log.info(f"{'Tearing down' if teardown else 'Provisioning'} RBAC rules for {len(sponsors)} sponsors")

    for sponsor in sponsors:
        summary = SponsorResponse.from_sponsor(sponsor).model_dump()
        if teardown:
            await destroy_rbac_rules(db, sponsor)
            log.info(f"Removed RBAC rules for {summary}")
            continue

        roles = await create_rbac_rules(db, sponsor)
        members = [SponsorMemberResponse.model_validate(m).model_dump() for m in await find_members(db, sponsor)]
        log.info(f"Provisioned {sorted(role.name for role in roles.values())} for {summary}")
        log.debug(f"Members of sponsor {sponsor.id}: {members}")

    return sponsors


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Provision sponsor-scoped RBAC rules")
    parser.add_argument("--sponsor-id", help="Only process this sponsor")
    parser.add_argument("--teardown", action="store_true", help="Remove the rules instead of creating them")
    return parser.parse_args(argv)


async def main(argv: Optional[Sequence[str]] = None):
    """Main function to provision sponsor RBAC rules."""
    args = parse_args(argv)
    log.info("Starting sponsor RBAC provisioning...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            await provision(db, args.sponsor_id, args.teardown)
            log.info("Sponsor RBAC provisioning completed successfully!")
        except Exception as e:
            log.error(f"Error provisioning sponsor RBAC rules: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
