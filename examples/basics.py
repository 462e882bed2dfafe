from synx import ManualScheduler, MemoryStorage, SharedMemoryBackend, debounce_filter, sync

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Syncing a value with storage")
print("-" * 100)
print()

storage = MemoryStorage()

# The default is written to storage when the key is missing.
counter = sync("counter", 0, storage)
print(f"Stored after creation: {storage.get_item('counter')!r}")

# Every change to the value is written back, serialized as a string.
counter.value += 1
counter.value += 1
print(f"Stored after two increments: {storage.get_item('counter')!r}")

# Setting the value to None removes the key.
counter.value = None
print(f"Stored after clearing: {storage.get_item('counter')!r}")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Reading back what is already there")
print("-" * 100)
print()

storage.set_item("volume", "0.8")
storage.set_item("tags", '["a","b"]')

# The default decides how the stored text is parsed.
volume = sync("volume", 0.5, storage)
tags = sync("tags", [], storage)
print(f"volume = {volume.value!r}, tags = {tags.value!r}")

# Objects are written back when mutated in place through the cell.
prefs = sync("prefs", {"theme": "dark"}, storage)
prefs.cell["theme"] = "light"
print(f"Stored prefs: {storage.get_item('prefs')!r}")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Two writers sharing one backend")
print("-" * 100)
print()

# Deferred work runs when the scheduler is pumped.
scheduler = ManualScheduler()
backend = SharedMemoryBackend()

left = sync("theme", "dark", backend.view(), scheduler=scheduler)
right = sync("theme", "dark", backend.view(), scheduler=scheduler)

left.cell.subscribe(lambda theme: print(f"left sees theme: {theme}"))
right.cell.subscribe(lambda theme: print(f"right sees theme: {theme}"))

left.value = "light"
scheduler.run_pending()
print(f"right.value = {right.value!r}")

# Removing the key on the backend resets both values to the default.
backend.remove_item("theme")
scheduler.run_pending()
print(f"after removal: left = {left.value!r}, right = {right.value!r}")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Debouncing writes")
print("-" * 100)
print()

scheduler = ManualScheduler()
draft_storage = MemoryStorage()
draft = sync(
    "draft",
    "",
    draft_storage,
    scheduler=scheduler,
    event_filter=debounce_filter(0.5, scheduler),
)

for text in ["h", "he", "hel", "hello"]:
    draft.value = text
    scheduler.advance(0.1)

print(f"Stored while typing: {draft_storage.get_item('draft')!r}")
scheduler.advance(0.5)
print(f"Stored after a pause: {draft_storage.get_item('draft')!r}")

# Dispose detaches the value from storage.
draft.dispose()
draft.value = "not saved"
print(f"Stored after dispose: {draft_storage.get_item('draft')!r}")
