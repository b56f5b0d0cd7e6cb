"""
Failure-First Harness CLI

Command-line interface (``ffh``) over the harness components. Each command
loads the documents, performs one operation and writes them back.
"""

import argparse
import asyncio
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from . import __version__
from .discovery import DiscoveryLedger
from .document import FailureSpecDocument
from .errors import HarnessError
from .evidence import EvidenceCollector
from .freeze import FreezeManager
from .guard import DocumentGuard
from .lifecycle import LifecycleEngine
from .logging_config import setup_logging
from .main import HarnessConfig, Role, current_user, timestamp
from .output import BaseFormatter, ConsoleFormatter, JsonFormatter, OutputLevel, render_report
from .priority import rank_entries, ranked_open_entries
from .store import (
    dump_raw,
    init_workspace,
    load_document,
    load_ledger,
    load_raw,
    save_document,
    save_ledger,
)
from .validation import validate
from .vcs import git_commit


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="ffh",
        description="Failure-First Harness - enumerate failures first, verify fixes with evidence",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Authoring
    init_parser = subparsers.add_parser("init", help="Create the .failure-first directory")
    init_parser.add_argument("--feature", help="Feature name (defaults to the workspace directory name)")
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing spec")

    validate_parser = subparsers.add_parser("validate", help="Validate the FailureSpec")
    validate_parser.add_argument("--lint", action="store_true", help="Include lint checks")

    add_parser = subparsers.add_parser("add", help="Add a failure entry from a JSON/YAML file")
    add_parser.add_argument("entry_file", help="File holding one failure entry")

    edit_parser = subparsers.add_parser("edit", help="Edit a failure entry before freeze")
    edit_parser.add_argument("failure_id")
    edit_parser.add_argument("changes_file", help="File holding the changed fields")

    freeze_parser = subparsers.add_parser("freeze", help="Freeze the spec")
    freeze_parser.add_argument("--commit", help="Fingerprint to record (defaults to git HEAD)")

    # Lifecycle
    status_parser = subparsers.add_parser("status", help="Show failure status summary")
    status_parser.add_argument("--all", action="store_true", help="List every failure")

    start_parser = subparsers.add_parser("start", help="Mark a failure as in progress")
    start_parser.add_argument("failure_id")

    claim_parser = subparsers.add_parser("claim", help="Claim a guardrail is in place")
    claim_parser.add_argument("failure_id")
    claim_parser.add_argument("--design", required=True, help="What the guardrail does")
    claim_parser.add_argument("--location", required=True, help="Where it lives (path[:start[-end]])")

    verify_parser = subparsers.add_parser("verify", help="Verify a claimed failure")
    verify_parser.add_argument("failure_id", nargs="?")
    verify_parser.add_argument("--evidence", help="Observed evidence (otherwise collected)")
    verify_parser.add_argument("--method", help="How the evidence was obtained")
    verify_parser.add_argument("--all", action="store_true", help="Verify every claimed failure")
    verify_parser.add_argument("--strict", action="store_true", help="Exit 1 if any claim fails to verify")
    verify_parser.add_argument("--output", help="Directory for the JSON verification report")

    reject_parser = subparsers.add_parser("reject", help="Reject a claimed failure")
    reject_parser.add_argument("failure_id")
    reject_parser.add_argument("--reason", required=True)

    accept_parser = subparsers.add_parser("accept-risk", help="Accept risk (human authority required)")
    accept_parser.add_argument("failure_id")
    accept_parser.add_argument("--reason", required=True)
    accept_parser.add_argument("--by", dest="accepted_by", required=True, help="Responsible human")
    accept_parser.add_argument("--review-by", help="Date the acceptance must be revisited")

    # Discoveries
    discover_parser = subparsers.add_parser("discover", help="Log a discovered failure")
    discover_parser.add_argument("description", nargs="+")

    discoveries_parser = subparsers.add_parser("discoveries", help="List discoveries")
    discoveries_parser.add_argument("--pending", action="store_true", help="Only undecided discoveries")

    disposition_parser = subparsers.add_parser("disposition", help="Decide a discovery")
    disposition_parser.add_argument("discovery_id")
    disposition_parser.add_argument("value", choices=["add_to_next", "accepted_risk", "duplicate"])
    disposition_parser.add_argument("--by", dest="decided_by", required=True, help="Deciding human")
    disposition_parser.add_argument("--note")
    disposition_parser.add_argument("--draft", help="Entry file for the next spec (add_to_next)")

    # Reporting
    priority_parser = subparsers.add_parser("priority", help="Show failures in priority order")
    priority_parser.add_argument("--all", action="store_true", help="Include resolved failures")

    report_parser = subparsers.add_parser("report", help="Generate markdown status report")
    report_parser.add_argument("--output", help="Write the report to a file")

    config_parser = subparsers.add_parser("config", help="Show/edit configuration")
    config_parser.add_argument("--show", action="store_true", help="Show current config")
    config_parser.add_argument("--init", action="store_true", help="Initialize config file")

    # Global options
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Increase verbosity",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Quiet mode",
    )
    parser.add_argument(
        "--log-file",
        help="Log to file",
    )
    parser.add_argument(
        "--config",
        help="Config file path",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit JSON instead of text",
    )
    parser.add_argument(
        "--workspace", "-C",
        help="Project root (defaults to the current directory)",
    )
    parser.add_argument(
        "--spec",
        help="FailureSpec path (defaults to .failure-first/failures.json)",
    )
    parser.add_argument(
        "--actor",
        help="Acting identity (defaults to $FFH_ACTOR or $USER)",
    )
    parser.add_argument(
        "--role",
        choices=[r.value for r in Role],
        help="Override the role a command acts in",
    )

    return parser.parse_args(argv)


@dataclass
class CommandContext:
    """Everything a command handler needs"""
    args: argparse.Namespace
    config: HarnessConfig
    formatter: BaseFormatter
    actor: str
    spec_path: Path

    def role(self, default: Role) -> Role:
        return Role(self.args.role) if self.args.role else default

    def load_ledger(self) -> DiscoveryLedger:
        return load_ledger(self.config.discoveries_path)

    def engine(self, document: FailureSpecDocument, ledger: Optional[DiscoveryLedger] = None) -> LifecycleEngine:
        guard = DocumentGuard(policy=self.config.frozen_write_policy, ledger=ledger)
        return LifecycleEngine(
            document,
            guard=guard,
            collector=EvidenceCollector(self.config),
            config=self.config,
        )


def load_config(args: argparse.Namespace) -> HarnessConfig:
    """Config file if given, else environment"""
    if args.config and Path(args.config).exists():
        config = HarnessConfig.from_yaml(args.config)
    else:
        config = HarnessConfig.from_env()
    if args.workspace:
        config.workspace_path = Path(args.workspace)
    return config


def _read_entry_file(path: str) -> Dict:
    data = load_raw(Path(path))
    if not isinstance(data, dict):
        raise HarnessError(f"{path} must hold a single object")
    return data


# =========================================================================
# Authoring
# =========================================================================

def cmd_init(ctx: CommandContext) -> int:
    feature = ctx.args.feature or ctx.config.workspace_path.resolve().name or "unnamed-feature"
    failures_path, discoveries_path = init_workspace(ctx.config, feature, ctx.actor, force=ctx.args.force)
    print(f"Initialized failure-first harness in {ctx.config.harness_path}")
    print(f"  Spec: {failures_path}")
    print(f"  Discoveries: {discoveries_path}")
    print()
    print("Next steps:")
    print("  1. Enumerate failures (ffh add <entry.json>)")
    print("  2. ffh validate --lint")
    print("  3. ffh freeze")
    return 0


def cmd_validate(ctx: CommandContext) -> int:
    raw = load_raw(ctx.spec_path)
    report = validate(raw, lint_checks=ctx.args.lint)
    ctx.formatter.validation(report, source=str(ctx.spec_path))
    return 0 if report.valid else 1


def cmd_add(ctx: CommandContext) -> int:
    document, _ = load_document(ctx.spec_path)
    ledger = ctx.load_ledger()
    guard = DocumentGuard(policy=ctx.config.frozen_write_policy, ledger=ledger)
    try:
        entry = guard.add_entry(document, _read_entry_file(ctx.args.entry_file), ctx.actor, ctx.role(Role.ADVERSARY))
    finally:
        save_ledger(ctx.config.discoveries_path, ledger)
    save_document(ctx.spec_path, document)
    print(f"Added {entry.id}: {entry.title}")
    return 0


def cmd_edit(ctx: CommandContext) -> int:
    document, _ = load_document(ctx.spec_path)
    ledger = ctx.load_ledger()
    guard = DocumentGuard(policy=ctx.config.frozen_write_policy, ledger=ledger)
    try:
        entry = guard.update_entry(
            document,
            ctx.args.failure_id,
            _read_entry_file(ctx.args.changes_file),
            ctx.actor,
            ctx.role(Role.ADVERSARY),
        )
    finally:
        save_ledger(ctx.config.discoveries_path, ledger)
    save_document(ctx.spec_path, document)
    print(f"Updated {entry.id}")
    return 0


def cmd_freeze(ctx: CommandContext) -> int:
    document, _ = load_document(ctx.spec_path)
    config = ctx.config
    manager = FreezeManager(
        fingerprint_provider=lambda: git_commit(config.workspace_path, config.git_timeout_ms),
    )
    result = manager.freeze(document, fingerprint=ctx.args.commit)
    if result.ok:
        save_document(ctx.spec_path, result.document)
    ctx.formatter.freeze(result)
    return 0 if result.ok else 1


# =========================================================================
# Lifecycle
# =========================================================================

def cmd_status(ctx: CommandContext) -> int:
    document, _ = load_document(ctx.spec_path)
    ctx.formatter.status(document, show_all=ctx.args.all)
    return 0


def _finish_transition(ctx: CommandContext, engine: LifecycleEngine, result) -> int:
    if result.ok:
        save_document(ctx.spec_path, engine.document)
    ctx.formatter.transition(result, engine.document.find(result.entry_id))
    return 0 if result.ok else 1


def cmd_start(ctx: CommandContext) -> int:
    document, _ = load_document(ctx.spec_path)
    engine = ctx.engine(document)
    result = engine.start(ctx.args.failure_id, ctx.actor, ctx.role(Role.BUILDER))
    return _finish_transition(ctx, engine, result)


def cmd_claim(ctx: CommandContext) -> int:
    document, _ = load_document(ctx.spec_path)
    engine = ctx.engine(document)
    result = engine.claim(
        ctx.args.failure_id,
        design=ctx.args.design,
        location=ctx.args.location,
        actor=ctx.actor,
        role=ctx.role(Role.BUILDER),
    )
    return _finish_transition(ctx, engine, result)


async def _verify_all(ctx: CommandContext, engine: LifecycleEngine) -> int:
    report = await engine.verify_all(
        actor=ctx.actor,
        role=ctx.role(Role.VERIFIER),
        workspace=ctx.config.workspace_path,
        entry_id=ctx.args.failure_id,
    )
    if report.verified:
        save_document(ctx.spec_path, engine.document)

    if ctx.args.output:
        stamp = timestamp().replace(":", "").replace("-", "").replace(".", "")
        report_path = Path(ctx.args.output) / f"verification-{stamp}.json"
        dump_raw(report_path, report.to_dict())
        print(f"Report written to {report_path}")

    ctx.formatter.verification_run(report)
    if ctx.args.strict and report.failed:
        return 1
    return 0


def cmd_verify(ctx: CommandContext) -> int:
    document, _ = load_document(ctx.spec_path)
    engine = ctx.engine(document)

    if ctx.args.all:
        return asyncio.run(_verify_all(ctx, engine))

    if not ctx.args.failure_id:
        print("Error: verify needs a failure id or --all", file=sys.stderr)
        return 2

    result = asyncio.run(engine.verify(
        ctx.args.failure_id,
        actor=ctx.actor,
        role=ctx.role(Role.VERIFIER),
        evidence=ctx.args.evidence,
        method=ctx.args.method,
        workspace=ctx.config.workspace_path,
    ))
    return _finish_transition(ctx, engine, result)


def cmd_reject(ctx: CommandContext) -> int:
    document, _ = load_document(ctx.spec_path)
    engine = ctx.engine(document)
    result = engine.reject(ctx.args.failure_id, ctx.args.reason, ctx.actor, ctx.role(Role.VERIFIER))
    return _finish_transition(ctx, engine, result)


def cmd_accept_risk(ctx: CommandContext) -> int:
    document, _ = load_document(ctx.spec_path)
    engine = ctx.engine(document)
    result = engine.accept_risk(
        ctx.args.failure_id,
        reason=ctx.args.reason,
        accepted_by=ctx.args.accepted_by,
        role=ctx.role(Role.RESOLVER),
        review_by=ctx.args.review_by,
        actor=ctx.actor,
    )
    return _finish_transition(ctx, engine, result)


# =========================================================================
# Discoveries
# =========================================================================

def cmd_discover(ctx: CommandContext) -> int:
    ledger = ctx.load_ledger()
    discovery = ledger.discover(" ".join(ctx.args.description), discovered_by=ctx.actor)
    save_ledger(ctx.config.discoveries_path, ledger)
    print(f"Discovery logged: {discovery.id}")
    print(f"  Description: {discovery.description}")
    print()
    print("Use `ffh discoveries` to see all pending discoveries.")
    return 0


def cmd_discoveries(ctx: CommandContext) -> int:
    ledger = ctx.load_ledger()
    ctx.formatter.discoveries(ledger.pending() if ctx.args.pending else ledger.entries)
    return 0


def cmd_disposition(ctx: CommandContext) -> int:
    ledger = ctx.load_ledger()
    if ctx.args.value == "add_to_next":
        if not ctx.args.draft:
            print("Error: add_to_next needs --draft <entry file> for the next spec", file=sys.stderr)
            return 2
        report = ledger.draft_for_next(ctx.args.discovery_id, _read_entry_file(ctx.args.draft), ctx.args.decided_by)
        ctx.formatter.validation(report, source=ctx.args.draft)
        if not report.valid:
            return 1
    else:
        ledger.set_disposition(ctx.args.discovery_id, ctx.args.value, ctx.args.decided_by, note=ctx.args.note)

    save_ledger(ctx.config.discoveries_path, ledger)
    discovery = ledger.get(ctx.args.discovery_id)
    print(f"{discovery.id} marked {discovery.disposition.value} by {discovery.decided_by}")
    return 0


# =========================================================================
# Reporting
# =========================================================================

def cmd_priority(ctx: CommandContext) -> int:
    document, _ = load_document(ctx.spec_path)
    entries = rank_entries(document.failures) if ctx.args.all else ranked_open_entries(document.failures)
    ctx.formatter.priority(entries)
    return 0


def cmd_report(ctx: CommandContext) -> int:
    document, _ = load_document(ctx.spec_path)
    text = render_report(document, ctx.load_ledger())
    if ctx.args.output:
        Path(ctx.args.output).write_text(text + "\n", encoding="utf-8")
        print(f"Report written to {ctx.args.output}")
    else:
        print(text)
    return 0


DEFAULT_CONFIG_FILE = "failure-first.yml"

DEFAULT_CONFIG = """# Failure-First Harness Configuration

harness_dir: .failure-first
failures_file: failures.json
discoveries_file: discoveries.json

# Evidence collection
evidence_timeout_ms: 30000  # 30 seconds
evidence_max_chars: 2000
inspection_window: 10
inspection_prefix_chars: 500

# Post-freeze structural writes: reject | redirect (log as a discovery)
frozen_write_policy: reject

# Version control
git_timeout_ms: 5000
"""


def cmd_config(ctx: CommandContext) -> int:
    """Show or initialize configuration"""
    if ctx.args.init:
        config_path = ctx.config.workspace_path / DEFAULT_CONFIG_FILE
        if config_path.exists():
            print(f"Config already exists: {config_path}")
            return 1
        config_path.write_text(DEFAULT_CONFIG)
        print(f"Created config: {config_path}")
        return 0

    print(json.dumps(ctx.config.to_dict(), indent=2))
    return 0


COMMANDS: Dict[str, Callable[[CommandContext], int]] = {
    "init": cmd_init,
    "validate": cmd_validate,
    "add": cmd_add,
    "edit": cmd_edit,
    "freeze": cmd_freeze,
    "status": cmd_status,
    "start": cmd_start,
    "claim": cmd_claim,
    "verify": cmd_verify,
    "reject": cmd_reject,
    "accept-risk": cmd_accept_risk,
    "discover": cmd_discover,
    "discoveries": cmd_discoveries,
    "disposition": cmd_disposition,
    "priority": cmd_priority,
    "report": cmd_report,
    "config": cmd_config,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = parse_args(argv)

    log_level = "DEBUG" if args.verbose >= 2 else ("INFO" if args.verbose >= 1 else "WARNING")
    if args.quiet:
        log_level = "ERROR"

    setup_logging(
        level=log_level,
        log_file=args.log_file,
        use_colors=not args.no_color,
    )

    output_level = OutputLevel.DEBUG if args.verbose >= 2 else (
        OutputLevel.VERBOSE if args.verbose >= 1 else (
            OutputLevel.QUIET if args.quiet else OutputLevel.NORMAL
        )
    )
    if args.json:
        formatter: BaseFormatter = JsonFormatter(level=output_level)
    else:
        formatter = ConsoleFormatter(level=output_level, use_colors=not args.no_color)

    handler = COMMANDS.get(args.command)
    if handler is None:
        print("Use --help for usage information")
        return 1

    config = load_config(args)
    ctx = CommandContext(
        args=args,
        config=config,
        formatter=formatter,
        actor=args.actor or current_user(),
        spec_path=Path(args.spec) if args.spec else config.failures_path,
    )

    try:
        return handler(ctx)
    except HarnessError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
