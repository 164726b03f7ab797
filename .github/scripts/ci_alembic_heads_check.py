"""CI gate: the Alembic migration graph must stay a single linear chain.

Every new migration chains off the current head. A second root
(down_revision = None) or a second head means two migrations were written
against the same parent and their order is undefined.

When a migration is added, update EXPECTED_HEAD to its revision id.

Usage:
  python .github/scripts/ci_alembic_heads_check.py
"""
from __future__ import annotations

import sys
from pathlib import Path

api_root = Path(__file__).resolve().parents[2] / "apps" / "api"
sys.path.insert(0, str(api_root))

from alembic.config import Config
from alembic.script import ScriptDirectory

EXPECTED_HEAD = "001"


def main() -> int:
    cfg = Config(str(api_root / "alembic.ini"))
    cfg.set_main_option("script_location", str(api_root / "alembic"))
    script = ScriptDirectory.from_config(cfg)

    heads = script.get_heads()
    if heads != [EXPECTED_HEAD]:
        print("MIGRATION HEAD CHECK FAILED")
        print(f"  Expected head: {EXPECTED_HEAD}")
        print(f"  Actual heads:  {sorted(heads)}")
        print("  Fix: chain the new migration off the previous head, then update EXPECTED_HEAD.")
        return 1

    revisions = list(script.walk_revisions())
    roots = [r.revision for r in revisions if r.down_revision is None]
    if len(roots) != 1:
        print("MIGRATION ROOT CHECK FAILED")
        print(f"  Expected one root, found {len(roots)}: {sorted(roots)}")
        return 1

    print(f"Migration integrity check: OK (head {EXPECTED_HEAD}, {len(revisions)} revisions)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
