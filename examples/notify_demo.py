#!/usr/bin/env python3
"""Runnable demo: publish a few NOTIFY messages for a running listener.

In one terminal:
    pg-listen postgresql://postgres@localhost/postgres orders

In another:
    python examples/notify_demo.py postgresql://postgres@localhost/postgres orders
"""

from __future__ import annotations

import json
import sys

import psycopg2
from rich.console import Console

console = Console()


def main() -> None:
    if len(sys.argv) < 3:
        console.print("usage: notify_demo.py TARGET CHANNEL [COUNT]")
        sys.exit(2)
    target, channel = sys.argv[1], sys.argv[2]
    count = int(sys.argv[3]) if len(sys.argv) > 3 else 5

    conn = psycopg2.connect(target)
    conn.autocommit = True
    try:
        with conn.cursor() as cur:
            for i in range(count):
                payload = json.dumps({"order_id": i, "status": "created"})
                # pg_notify() takes the channel as a value, so no quoting needed
                cur.execute("SELECT pg_notify(%s, %s)", (channel, payload))
                console.print(f"[cyan]{channel}[/cyan] <- {payload}")
    finally:
        conn.close()
    console.print(f"[green]Sent {count} notification(s)[/green]")


if __name__ == "__main__":
    main()
