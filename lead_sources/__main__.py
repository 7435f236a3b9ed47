from __future__ import annotations

from lead_sources.scraper import cli

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(cli.main())
