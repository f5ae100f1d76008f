# jobs/seed_demo_users.py

from core.errors import CredentialStoreError
from core.logging_config import get_logger
from core.supabase_client import get_supabase_client
from models.enums import Role
from services.account_service import AccountService
from services.credential_store import SupabaseCredentialStore


logger = get_logger("seed")


DEMO_USERS = [
    {"name": "Administrator Rentalinx", "email": "admin@rentalinx.com", "password": "Admin123!", "role": Role.admin},
    {"name": "Manager Rentalinx", "email": "manager@rentalinx.com", "password": "password123", "role": Role.manager},
    {"name": "Sari Telemarketing Mobil", "email": "sari.mobil@rentalinx.com", "password": "password123", "role": Role.telemarketing_mobil},
    {"name": "Budi Telemarketing Bus", "email": "budi.bus@rentalinx.com", "password": "password123", "role": Role.telemarketing_bus},
    {"name": "Eko Telemarketing Elf", "email": "eko.elf@rentalinx.com", "password": "password123", "role": Role.telemarketing_elf},
    {"name": "Hana Telemarketing Hiace", "email": "hana.hiace@rentalinx.com", "password": "password123", "role": Role.telemarketing_hiace},
]


def seed(service: AccountService, users=None) -> dict:
    """
    Create or refresh every demo account. Safe to re-run: existing rows get
    their password, role and active flag reset instead of a duplicate.
    """
    summary = {"created": [], "updated": [], "failed": []}

    for entry in users or DEMO_USERS:
        try:
            account, created = service.ensure_account(
                entry["name"], entry["email"], entry["password"], entry["role"]
            )
        except CredentialStoreError as e:
            logger.error(f"Could not seed {entry['email']}: {e}")
            summary["failed"].append(entry["email"])
            continue

        summary["created" if created else "updated"].append(account.email)

    logger.info(
        f"Seeding done: {len(summary['created'])} created, "
        f"{len(summary['updated'])} updated, {len(summary['failed'])} failed"
    )
    return summary


def run():
    """
    CLI entry point: python -m jobs.seed_demo_users
    """
    client = get_supabase_client()
    if not client:
        raise RuntimeError("Supabase not configured")

    summary = seed(AccountService(SupabaseCredentialStore(client=client)))

    print("\nDemo credentials:")
    for entry in DEMO_USERS:
        print(f"  {entry['role'].display_name:20s} {entry['email']} / {entry['password']}")

    return summary


if __name__ == "__main__":
    run()
