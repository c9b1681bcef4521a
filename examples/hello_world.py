"""
kv_manager — Hello World

Every operation is a payload. Middleware runs before and after the
provider, in position order. The first error skips the provider and
is raised once the post-provider middleware has seen it.
"""

import asyncio
import logging

from kv_manager import (
    AutoEnsureMiddleware,
    Bulk,
    CustomMiddleware,
    ErrorIdentifier,
    KVError,
    KVManager,
    LoggingMiddleware,
    MemoryProvider,
    Operation,
)

# ─── Your hooks (anything — completely decoupled from the storage) ───


def reject_reserved_keys(payload):
    if payload.key.startswith("_"):
        payload.error = KVError(ErrorIdentifier.INVALID_KEY, f"'{payload.key}' is reserved")


async def main():
    logging.basicConfig(level=logging.INFO, format="  [log] %(message)s")

    # ──────────────────────────────────────
    #  1. Create the manager
    # ──────────────────────────────────────
    kv = KVManager(
        name="profiles",
        provider=MemoryProvider(),
        middlewares=[
            AutoEnsureMiddleware(default_value={"visits": 0, "tags": []}),
            LoggingMiddleware(operations=[Operation.INCREMENT, Operation.PUSH]),
        ],
    )
    await kv.init()

    # ──────────────────────────────────────
    #  2. Add a custom middleware (no subclass needed)
    # ──────────────────────────────────────
    await kv.add_middleware(
        CustomMiddleware(
            name="reserved_keys",
            operations=[Operation.SET, Operation.INCREMENT, Operation.PUSH],
            hook=reject_reserved_keys,
        )
    )

    # ──────────────────────────────────────
    #  3. Writes on keys that do not exist yet
    # ──────────────────────────────────────
    print("=== Auto-ensured writes ===\n")

    await kv.increment("alice", "visits")
    await kv.increment("alice", "visits")
    await kv.push("alice", "admin", "tags")
    print(f"  alice: {await kv.get('alice')}")
    print(f"  never-set: {await kv.get('bob')}")

    # ──────────────────────────────────────
    #  4. Search and bulk shapes
    # ──────────────────────────────────────
    print("\n=== Search ===\n")

    await kv.set("carol", {"visits": 7, "tags": ["ops"]})
    frequent = await kv.filter(lambda profile: profile["visits"] > 1, bulk=Bulk.ENTRIES)
    print(f"  frequent visitors: {frequent}")
    print(f"  visits: {await kv.map('visits')}")

    # ──────────────────────────────────────
    #  5. A middleware failing the call
    # ──────────────────────────────────────
    print("\n=== Reserved key ===\n")

    try:
        await kv.set("_internal", {"visits": 0, "tags": []})
    except KVError as e:
        print(f"  [DENIED] {e.identifier.value}: {e.message}")

    # ──────────────────────────────────────
    #  6. A provider failure
    # ──────────────────────────────────────
    print("\n=== Provider failure ===\n")

    await kv.set("dave", "not a profile")
    try:
        await kv.push("dave", "x", "tags")
    except KVError as e:
        print(f"  [FAILED] {e}")

    print("\nManager JSON: ", kv.export())
    await kv.close()


if __name__ == "__main__":
    asyncio.run(main())
