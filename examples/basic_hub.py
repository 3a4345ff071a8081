#!/usr/bin/env python3
"""Example: two hubs following each other over the in-process transport."""
import asyncio
import json

from velohub import Hub, HubClient, Kinds, Wallet
from velohub.transport.local import LocalTransport


async def main():
    transport = LocalTransport()
    alice, bob = Wallet.generate(), Wallet.generate()

    alice_hub = transport.register(Hub("alice-hub", alice.address))
    bob_hub = transport.register(Hub("bob-hub", bob.address))

    alice_client = HubClient(transport, alice)
    bob_client = HubClient(transport, bob)

    # Alice follows Bob's hub; Bob's hub learns Alice's hub is a follower
    await alice_client.create_event("alice-hub", [
        ("Kind", Kinds.FOLLOW), ("p", json.dumps(["bob-hub"])),
    ])
    print(f"Alice follows: {alice_hub.follow_list()}")
    print(f"Bob's followers: {bob_hub.followers()}")

    # Bob posts; the note fans out to Alice's hub
    await bob_client.create_event("bob-hub", [("Kind", Kinds.NOTE)], "Hello from Bob")

    outcome = await alice_client.query("alice-hub", [{"kinds": [Kinds.NOTE], "limit": 10}])
    print(f"Alice's hub has {len(outcome.events)} note(s): {outcome.status.value}")
    for event in outcome.events:
        print(f"  {event['From']}: {event.get('Content')}")


if __name__ == "__main__":
    asyncio.run(main())
