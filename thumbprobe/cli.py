"""
Command-line entry point.

  thumbprobe                                   # default target, built-in table
  thumbprobe http://host/timthumb.php --html report.html --out report.json
  TARGET_BASE_URL=https://cdn.example/tt.php thumbprobe --no-color

Exit status: 0 when every scenario passed, 1 on any failure, 2 when the
harness could not start or could not write a report.
"""

import argparse
import logging
import sys
from typing import List, Optional

from thumbprobe import __version__
from thumbprobe.config import HarnessConfig
from thumbprobe.errors import ThumbprobeError
from thumbprobe.harness import run
from thumbprobe.report import c_bad

EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thumbprobe",
        description="thumbprobe: black-box conformance checks for a TimThumb image endpoint",
    )
    parser.add_argument("base_url", nargs="?",
                        help="Target endpoint (overrides TARGET_BASE_URL).")
    parser.add_argument("--local-image", help="Source path of a valid image on the target.")
    parser.add_argument("--external-image", help="Absolute URL of a valid remote image.")
    parser.add_argument("--timeout", type=float,
                        help="Seconds to wait for each response (default: 10).")
    parser.add_argument("--verify-ssl", action="store_true", default=None,
                        help="Enable strict SSL certificate verification (default: off).")
    parser.add_argument("--follow-redirects", action="store_true",
                        help="Judge the final response after redirects instead of the first one.")

    ext = parser.add_mutually_exclusive_group()
    ext.add_argument("--allow-external", dest="allow_external", action="store_true", default=None,
                     help="Target accepts remote image sources (default).")
    ext.add_argument("--no-external", dest="allow_external", action="store_false",
                     help="Target rejects remote image sources.")
    parser.add_argument("--webshot", dest="webshot_enabled", action="store_true", default=None,
                        help="Target has the WebShot feature enabled.")

    parser.add_argument("--script", dest="script_path",
                        help="Local path of the target script; must exist, its VERSION is reported.")
    parser.add_argument("--preflight", action="store_true",
                        help="Abort before running scenarios if the target is unreachable.")
    parser.add_argument("--log-file", dest="log_path", help="Results log path.")
    parser.add_argument("--log-mode", choices=["a", "w"], help="Append to (a) or truncate (w) the log.")
    parser.add_argument("--html", dest="html_path", help="Write HTML report to this path ('-' for stdout).")
    parser.add_argument("--out", dest="json_path", help="Write JSON report to this path ('-' for stdout).")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colours.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def config_from_args(args: argparse.Namespace, config: Optional[HarnessConfig] = None) -> HarnessConfig:
    """Overlay CLI options on an environment-derived config."""
    config = config or HarnessConfig.from_env()
    overrides = {
        "base_url": args.base_url,
        "local_image": args.local_image,
        "external_image": args.external_image,
        "timeout": args.timeout,
        "verify_ssl": args.verify_ssl,
        "allow_external": args.allow_external,
        "webshot_enabled": args.webshot_enabled,
        "script_path": args.script_path,
        "log_path": args.log_path,
        "log_mode": args.log_mode,
        "html_path": args.html_path,
        "json_path": args.json_path,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)
    if args.follow_redirects:
        config.follow_redirects = True
    if args.preflight:
        config.preflight = True
    if args.no_color or not sys.stdout.isatty():
        config.color = False
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = config_from_args(args)
        summary = run(config)
    except ThumbprobeError as e:
        print(c_bad(f"[-] {e}"), file=sys.stderr)
        return EXIT_CONFIG_ERROR
    return summary.exit_code()


if __name__ == "__main__":
    sys.exit(main())
