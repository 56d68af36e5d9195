from __future__ import annotations

import argparse
import sys
from pathlib import Path

from atpack.app import run_app


def main() -> None:
    p = argparse.ArgumentParser(prog="atpack", description="Device-pack reader (.pdsc + .atdf / EDC .PIC)")
    p.add_argument("pack_dir", type=Path, help="Directory of an unpacked device pack")
    p.add_argument("--device", default=None, help="Only this device (case-insensitive)")
    p.add_argument("--dump", choices=["yaml"], default=None, help="Dump the device model instead of a summary")

    # Logging
    p.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    p.add_argument("--quiet", action="store_true", help="Reduce console output")

    args = p.parse_args()

    sys.exit(
        run_app(
            pack_dir=args.pack_dir,
            device=args.device,
            dump=args.dump,
            log_level=args.log_level,
            quiet=args.quiet,
        )
    )


if __name__ == "__main__":
    main()
