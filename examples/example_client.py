"""Example using the Cipherion API client.

Set CIPHERION_BASE_URL, CIPHERION_PROJECT_ID, CIPHERION_API_KEY and
CIPHERION_PASSPHRASE (or put them in a .env file) before running.
"""

import asyncio

from cipherion import CipherionClient, CipherionError, MigrationOptions


async def main():
    users = [
        {"id": i, "profile": {"email": f"user{i}@example.com", "phone": "555-0100"}}
        for i in range(25)
    ]

    # Using async context manager closes the HTTP connection pool on exit
    async with CipherionClient() as client:
        try:
            encrypted = await client.deep_encrypt(users[0], {"exclude_fields": ["id"]})
            print(f"Encrypted: {encrypted}")
            print(f"Decrypted: {await client.deep_decrypt(encrypted)}")
        except CipherionError as e:
            print(f"✗ Request failed ({e.status_code}): {e.message}")
            return

        result = await client.migrate_encrypt(
            users,
            MigrationOptions(
                batch_size=10,
                delay_between_batches=1.0,
                on_progress=lambda p: print(f"  {p.percentage}% ({p.processed}/{p.total})"),
                exclusion_options={"exclude_fields": ["id"]},
            ),
        )

        print(f"\nMigrated {result.summary.successful}/{result.summary.total} records")
        for failure in result.failed:
            print(f"  ✗ {failure.item['id']}: {failure.error}")


if __name__ == "__main__":
    asyncio.run(main())
