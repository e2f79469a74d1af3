import argparse
import logging
import sys
from pathlib import Path

from PyQt5.QtWidgets import QApplication

from CS_Libs.EditingLib.studio_window import StudioWindow
from CS_Libs.settings import load_settings, settings_path


def main() -> None:
    parser = argparse.ArgumentParser(description="Canvas Studio")
    parser.add_argument("--settings", type=Path, default=None, help="Path to a settings JSON file")
    args, qt_args = parser.parse_known_args()

    settings = load_settings(args.settings or settings_path())
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QApplication([sys.argv[0]] + qt_args)
    window = StudioWindow(settings)
    window.show()
    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
