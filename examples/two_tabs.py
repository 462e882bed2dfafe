"""
Two Tabs
========

Simulates two browser tabs sharing one storage backend and prints, after each
step, what each tab holds next to what the backend stores.

Run with: python examples/two_tabs.py
"""

from rich.console import Console
from rich.table import Table, box

from synx import ManualScheduler, SharedMemoryBackend, sync

console = Console()
scheduler = ManualScheduler()
backend = SharedMemoryBackend()

tabs = {
    name: {
        "theme": sync("theme", "dark", backend.view(), scheduler=scheduler),
        "cart": sync("cart", [], backend.view(), scheduler=scheduler),
    }
    for name in ("tab A", "tab B")
}


def show(step):
    table = Table(title=step, box=box.ROUNDED)
    table.add_column("key", style="cyan")
    for name in tabs:
        table.add_column(name)
    table.add_column("backend", style="magenta")

    stored = backend.snapshot()
    for key in ("theme", "cart"):
        row = [repr(tabs[name][key].value) for name in tabs]
        table.add_row(key, *row, repr(stored.get(key)))
    console.print(table)


show("Initial state")

tabs["tab A"]["theme"].value = "light"
show("tab A switched theme (not yet delivered)")

scheduler.run_pending()
show("After the event loop turns")

tabs["tab B"]["cart"].cell.value.append("apple")
tabs["tab B"]["cart"].cell.trigger()
scheduler.run_pending()
show("tab B added to the cart in place")

backend.remove_item("theme")
scheduler.run_pending()
show("Theme removed from storage")

for synced in (s for tab in tabs.values() for s in tab.values()):
    synced.dispose()
