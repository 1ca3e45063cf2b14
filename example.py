"""Example usage of the typed_sheets library."""

import asyncio
import os
from datetime import datetime, timezone

from typed_sheets import FieldKind, GoogleCredentialProvider, SheetDB, SheetsClient

# Declare the columns of the sheet, left to right from column D
# (A, B and C hold created_at, updated_at and deleted_at)
user_fields = [
    {"name": "email", "kind": FieldKind.STRING, "column": "D"},
    {"name": "name", "kind": FieldKind.STRING, "column": "E"},
    {"name": "age", "kind": FieldKind.NUMBER, "column": "F"},
    {"name": "birth_date", "kind": FieldKind.DATETIME, "column": "G"},
    {"name": "is_married", "kind": FieldKind.BOOLEAN, "column": "H"},
]


async def main() -> None:
    credentials = GoogleCredentialProvider.from_refresh_token(
        refresh_token=os.environ["REFRESH_TOKEN"],
        client_id=os.environ["CLIENT_ID"],
        client_secret=os.environ["CLIENT_SECRET"],
    )

    async with SheetDB(SheetsClient(credentials), os.environ["SHEET_ID"]) as db:
        users = db.get_model(user_fields)

        print("Inserting a user...")
        user_id = await users.insert_one(
            {
                "email": "h@h.com",
                "name": "Helal",
                "age": 47,
                "birth_date": datetime(1977, 4, 2, tzinfo=timezone.utc),
                "is_married": True,
            }
        )
        print(f"  id = {user_id}")

        await users.update_one(user_id, {"age": 48})
        print(f"  after update: {await users.get_one(user_id)}")

        print("\nQuerying married users born after 1970...")
        query_filters = {
            "AND": [
                {"birth_date": {"after": datetime(1970, 1, 1, tzinfo=timezone.utc)}},
                {"is_married": {"eq": True}},
            ]
        }
        print(users.compile_query(filters=query_filters, selections=["age", "email"], limit=12))
        for row in await users.find_many(
            filters=query_filters, selections=["age", "email"], limit=12
        ):
            print(f"  {row}")

        await users.delete_one(user_id)
        print(f"\nAfter delete, get_one returns {await users.get_one(user_id)}")


if __name__ == "__main__":
    asyncio.run(main())
