import argparse
import logging
import os
import sys

# Project root on the module search path
current_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.append(current_dir)

from bouquet.core.config import DEFAULT_CONFIG_PATH, load_settings
from bouquet.core.core import AppCore


def main():
    parser = argparse.ArgumentParser(description="Particle bouquet driven by hand gestures")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="JSON settings file")
    parser.add_argument("--verbose", action="store_true", help="debug logging")
    args, qt_args = parser.parse_known_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    core = AppCore(sys.argv[:1] + qt_args, load_settings(args.config))
    return core.run()


if __name__ == "__main__":
    sys.exit(main())
