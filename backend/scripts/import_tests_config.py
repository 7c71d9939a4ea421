from __future__ import annotations

import argparse
import json
import os
import pathlib
import sys

# Ensure imports work when running from any CWD and in Docker (/app)
_HERE = pathlib.Path(__file__).resolve()
_BACKEND_ROOT = _HERE.parents[1]
sys.path.insert(0, str(_BACKEND_ROOT))
sys.path.insert(0, "/app")
sys.path.insert(0, os.getcwd())

from flightdeck.db.session import SessionLocal
from flightdeck.schemas.test import TestMetadata
from flightdeck.services.catalog import TestCatalog


def load_config(path: pathlib.Path) -> list[TestMetadata]:
    """Read a tests_config.json file: either a list of tests or {"tests": [...]}."""
    data = json.loads(path.read_text(encoding="utf-8"))
    entries = data.get("tests") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise SystemExit(f"{path}: expected a list of tests")
    return [TestMetadata.from_config(e) for e in entries if isinstance(e, dict) and e.get("id")]


def run(*, path: pathlib.Path, deactivate_missing: bool) -> None:
    tests = load_config(path)
    with SessionLocal() as db:
        catalog = TestCatalog(db)
        seen = set()
        for meta in tests:
            catalog.upsert_test(meta)
            seen.add(meta.id)
            print(f"imported test {meta.id}: {meta.name('en')}")

        if deactivate_missing:
            for meta in catalog.list_available_tests():
                if meta.id not in seen:
                    catalog.upsert_test(meta, is_active=False)
                    print(f"deactivated test {meta.id}")


def main() -> None:
    p = argparse.ArgumentParser()
    p.add_argument("--config", default="assets/tests/tests_config.json", help="Path to tests_config.json")
    p.add_argument("--deactivate-missing", action="store_true", help="Deactivate catalog tests absent from the file")
    args = p.parse_args()

    run(path=pathlib.Path(args.config), deactivate_missing=bool(args.deactivate_missing))


if __name__ == "__main__":
    main()
