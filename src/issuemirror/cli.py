"""issue-mirror command line entry point.

Takes no options: everything comes from ``issue_mirror.config.yaml`` (when
present) and ``ISSUE_MIRROR_*`` environment variables. Progress is logged to
stdout and the run ends with a one-line summary.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from issuemirror.config import ConfigError, MirrorConfig, load_config
from issuemirror.env_auth import EnvAuthConfig, create_env_auth_manager
from issuemirror.logging import configure_logging, get_logger
from issuemirror.sync import MirrorSummary, MirrorSync


def _build_parser() -> argparse.ArgumentParser:
    return argparse.ArgumentParser(
        prog="issue-mirror",
        description=(
            "Copy issues from a source GitHub repository into a target repository, "
            "skipping ones already mirrored. Configure via issue_mirror.config.yaml "
            "or ISSUE_MIRROR_* environment variables."
        ),
    )


def _write_summary(path: Path, summary: MirrorSummary) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary, indent=2) + "\n", encoding="utf-8")


def _format_summary(summary: MirrorSummary) -> str:
    prefix = "[dry-run] " if summary["dry_run"] else ""
    return (
        f"{prefix}Summary: {summary['existing']} existing, "
        f"{summary['copied']} copied, {summary['remaining']} remaining"
    )


def run(cfg: MirrorConfig) -> int:
    logger = get_logger()
    auth = create_env_auth_manager(
        EnvAuthConfig(load_dotenv=cfg.env_auth_load_dotenv, dotenv_path=cfg.env_auth_dotenv_path)
    )
    token = auth.get_github_token()
    if not token and not cfg.dry_run:
        logger.log_error("GitHub token not found; set GITHUB_TOKEN or add it to a .env file")
        return 1
    summary = MirrorSync.from_config(cfg, token).run()
    if cfg.summary_json:
        _write_summary(cfg.summary_json, summary)
        logger.debug(f"Wrote summary to {cfg.summary_json}")
    print(_format_summary(summary))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    parser.parse_args(argv)
    try:
        cfg = load_config()
    except ConfigError as exc:
        get_logger().log_error("Invalid configuration", error=str(exc))
        return 2
    configure_logging(json_logging=cfg.logging_json_enabled, level=cfg.logging_level)
    return run(cfg)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
