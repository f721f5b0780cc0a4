#!/usr/bin/env python3
# Example usage of embedded_jsonl_doc_store
# Creates demo.jsonl next to the current directory and queries it.

import asyncio

from embedded_jsonl_doc_store import Database

LOG = """\
E{"_id":1,"name":"Ann","age":30}
E{"_id":2,"name":"Bo","age":40}
D{"_id":3,"name":"Old","age":70}
"""


async def main() -> None:
    with open("demo.jsonl", "w", encoding="utf-8") as f:
        f.write(LOG)

    # Only "name" is searched by $text queries
    db = Database("demo.jsonl", full_text_fields=["name"])

    for r in await db.find({"age": {"$gt": 25}}, sort=[("age", -1)]):
        print("Over 25:", r["name"], r["age"])

    print("Names:", await db.find({}, projection=["name"]))
    print("Text 'bo':", await db.find({"$text": "bo"}))

    # Mutations are applied in call order, even when started together
    await asyncio.gather(
        db.insert({"_id": 4, "name": "Cy", "age": 22}),
        db.delete({"name": {"$in": ["Ann"]}}),
    )
    print("After insert+delete:", await db.find({}))

    # persist=True writes mutations back to the file
    durable = Database("demo.jsonl", persist=True)
    deleted = await durable.delete({"$or": [{"age": {"$lt": 35}}, {"name": "Bo"}]})
    print("Deleted (logical, persisted):", deleted)


if __name__ == "__main__":
    asyncio.run(main())
