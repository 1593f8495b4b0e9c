"""命令行入口：参数解析与唯一的退出码处理。"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from src.application.schemas.artifact_manager import ArtifactManagerConfig
from src.application.schemas.build_options import BuildOptions
from src.application.services.application_build_service import ApplicationBuildService
from src.application.services.artifact_manager import ArtifactManager
from src.shared.config import Settings, get_settings
from src.shared.errors import AppError, UsageError
from src.shared.logging import configure_logging, get_logger, log_extra, start_run

log = get_logger("applicationbuilder")

PROG = "applicationbuilder"
BANNER = "Apache Sling Feature Application Builder"


class _ArgumentParser(argparse.ArgumentParser):
    """解析失败时抛出 UsageError，而不是直接退出进程。"""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(f"Unable to parse command line: {message}")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog=PROG, description=BANNER)
    parser.add_argument("-u", dest="repository_urls", metavar="URLS", help="repository url (comma separated)")
    parser.add_argument("-f", dest="files", metavar="FILES", help="Set feature files (comma separated)")
    parser.add_argument("-d", dest="dirs", metavar="DIRS", help="Set feature file dirs (comma separated)")
    parser.add_argument("-o", dest="output", metavar="FILE", help="output file")
    parser.add_argument("-p", dest="properties_file", metavar="FILE", help="sling.properties file")
    parser.add_argument("-fv", dest="framework_version", metavar="VERSION", help="Set felix framework version")
    parser.add_argument("-c", dest="cache_dir", metavar="DIR", help="Set cache dir")
    parser.add_argument("-v", dest="verbose", action="store_true", help="Verbose")
    return parser


def _split(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(s.strip() for s in value.split(",") if s.strip())


def parse_args(
    argv: Sequence[str] | None,
    settings: Settings,
    parser: argparse.ArgumentParser | None = None,
) -> BuildOptions:
    """解析命令行参数，生成只读的 BuildOptions。

    Raises:
        UsageError: 参数非法或既未指定文件也未指定目录
    """
    parser = parser or build_parser()
    ns = parser.parse_args(argv)

    return BuildOptions(
        output=Path(ns.output) if ns.output else settings.default_output,
        files=_split(ns.files),
        dirs=_split(ns.dirs),
        repository_urls=_split(ns.repository_urls) or tuple(settings.repository_urls),
        properties_file=Path(ns.properties_file) if ns.properties_file else None,
        framework_version=ns.framework_version or None,
        cache_dir=Path(ns.cache_dir) if ns.cache_dir else settings.cache_dir,
        verbose=ns.verbose,
    )


def _start_logging(level: str, settings: Settings) -> None:
    configure_logging(level, settings.log_format)
    log.info(BANNER)
    log.info("")


def run(argv: Sequence[str] | None = None) -> int:
    """执行一次构建，返回进程退出码（0 成功，1 失败）。"""
    settings = get_settings()
    start_run()
    parser = build_parser()

    try:
        options = parse_args(argv, settings, parser)
    except UsageError as e:
        _start_logging(settings.log_level, settings)
        parser.print_help(sys.stderr)
        log.error(e.message)
        return e.exit_code

    _start_logging("DEBUG" if options.verbose else settings.log_level, settings)

    try:
        config = ArtifactManagerConfig.from_settings(
            settings,
            repository_urls=options.repository_urls,
            cache_dir=options.cache_dir,
        )
        with ArtifactManager(config) as artifact_manager:
            ApplicationBuildService(options, artifact_manager).run()
    except AppError as e:
        log.error(
            e.message,
            exc_info=options.verbose,
            extra=log_extra(code=e.code, details=e.details),
        )
        return e.exit_code
    except Exception:
        log.exception("Problem generating application")
        return 1
    return 0


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
