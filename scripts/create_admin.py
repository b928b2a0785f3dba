"""Create (or promote) an admin principal directly in the configured store.

Usage: python scripts/create_admin.py EMAIL USERNAME PASSWORD
"""
import asyncio
import sys

sys.path.insert(0, ".")

from src.config import get_settings
from src.database import Database
from src.kernel.audit.audit_log import AuditLog
from src.kernel.identity.identity_service import IdentityService
from src.kernel.permissions.catalog import RoleCatalog
from src.kernel.permissions.grant_ledger import GrantLedger


async def main(email: str, username: str, password: str) -> None:
    settings = get_settings()
    database = Database(settings)
    await database.create_all()
    audit_log = AuditLog(database.session_factory)

    async with database.session_factory() as session:
        await RoleCatalog(session).ensure_defaults()
        identity = IdentityService(session, audit_log)

        principal = await identity.get_by_email(email)
        if principal is None:
            principal = await identity.register(email=email, password=password, username=username)
            print(f"Created {principal.username} ({principal.id})")
        else:
            print(f"Found {principal.username} ({principal.id})")

        await GrantLedger(session).assign_role(principal.id, settings.admin_role)
        await session.commit()
        print(f"Granted role '{settings.admin_role}'")

    await audit_log.drain()
    await database.dispose()


if __name__ == "__main__":
    if len(sys.argv) != 4:
        print(__doc__)
        sys.exit(1)
    asyncio.run(main(*sys.argv[1:]))
