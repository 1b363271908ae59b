"""Legacy entry point for the MesmerDrift CLI."""

from __future__ import annotations

from pathlib import Path
import sys
import os


def main(argv: list[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)

    # Check for --trace flag BEFORE any imports that use logging
    if "--trace" in args:
        os.environ["MESMERDRIFT_TICK_TRACE"] = "1"
        args.remove("--trace")

    from mesmerdrift.cli import main as cli_main

    if args:
        candidate = Path(args[0])
        # A bare session file previews it
        if candidate.is_file() and candidate.name.endswith(".session.json"):
            return cli_main(["preview", "--load", str(candidate), *args[1:]])
        return cli_main(args)
    return cli_main(["sessions"])


if __name__ == "__main__":
    raise SystemExit(main())
