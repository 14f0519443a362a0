"""
Example showing the blob store contract on a local store.

This example shows how to:
1. Build a store through the factory
2. Write, describe, list and read objects
3. Address the same object in its different location forms
4. Copy an object inside one store
"""

import tempfile

from blobstore import ListOption, StoreKind, copy_raw, create_blob_store
from blobstore.utils.logging_config import setup_logging


def main() -> None:
    setup_logging("INFO")

    with tempfile.TemporaryDirectory() as root:
        store = create_blob_store(StoreKind.LOCAL, root)

        store.write_raw("reports/2024/summary.txt", b"quarterly numbers")
        store.write_raw("reports/2025/summary.txt", b"more numbers")

        meta = store.get_meta("reports/2024/summary.txt")
        print(f"{meta.name}: {meta.size} bytes, {meta.content_type}")

        # The same file in its three location forms
        for path in (
            "reports/2024/summary.txt",
            f"{root}/reports/2024/summary.txt",
            f"file://{root}/reports/2024/summary.txt",
        ):
            print(store.build_url(path))

        years = store.list_meta("reports", ListOption(directory_only=True))
        print("years:", [m.name for m in years])

        copy_raw(store, None, "reports/2024/summary.txt", "archive/summary-2024.txt")
        with store.read_raw("archive/summary-2024.txt") as stream:
            print(stream.read().decode())


if __name__ == "__main__":
    main()
