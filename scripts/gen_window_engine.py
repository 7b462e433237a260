#!/usr/bin/env python3
"""Generate window engine Verilog from convwin."""

import sys
from pathlib import Path

# Add src to path if running from scripts/
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from amaranth.back import verilog  # noqa: E402

from convwin.config import DEFAULT_WINDOW_CONFIG  # noqa: E402
from convwin.engine import WindowEngine  # noqa: E402
from convwin.line_buffer import LineBuffer  # noqa: E402


def main():
    gen_dir = project_root / "gen"
    gen_dir.mkdir(exist_ok=True)

    config = DEFAULT_WINDOW_CONFIG

    for name, module in [
        ("line_buffer", LineBuffer(config)),
        ("window_engine", WindowEngine(config)),
    ]:
        output_path = gen_dir / f"{name}.v"
        with open(output_path, "w") as f:
            f.write(verilog.convert(module, name=name))
        print(f"Generated {output_path}")


if __name__ == "__main__":
    main()
