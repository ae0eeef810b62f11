#!/usr/bin/env python3
"""
Kenosis, from Ancient Greek κένωσις (emptying)

Finds reclaimable disk space. Walks the locations listed in a rules file
(caches, logs, temporary folders, ...) and reports every entry old enough
to be a cleanup candidate. Nothing is ever deleted.

Usage:
    kenosis                            # Scan with rules/safe_caches.yaml
    kenosis my_rules.yaml              # Scan with a specific rules file
    kenosis my_rules.yaml --remember   # ... and make it the default
    kenosis --aggregate-dirs           # Report directories with their total size
    kenosis --top 50                   # Show the 50 largest findings
    kenosis --show-config              # Show settings and the rules file in use
"""

import argparse
import logging
import pathlib
import signal
import sys
from typing import Optional

from rich.logging import RichHandler
from rich.markup import escape

from auxiliary import format_bytes, format_path_for_display, format_timestamp, truncate_path
from console_ui import ConsoleUI
from events import FindingDiscovered, PhaseChanged, ProgressUpdated
from finding_sink import FindingList
from kenosis_config import SharedConfigManager
from scanner import PHASE_STARTING, ScanChannel, ScanOrchestrator, ScanSession
from walker import RuleOutcome, RuleWalker

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130

PROGRESS_EVERY = 200

_OUTCOME_LABELS = {
    RuleOutcome.MATCHED: "[green]found[/green]",
    RuleOutcome.NO_MATCHES: "[dim]nothing old enough[/dim]",
    RuleOutcome.ROOT_MISSING: "[dim]not present[/dim]",
    RuleOutcome.ROOT_DENIED: "[red]no access[/red]",
    RuleOutcome.CANCELLED: "[yellow]cancelled[/yellow]",
}


class Kenosis:
    """Main application class for the Kenosis space finder"""

    def __init__(self, args: argparse.Namespace, ui: Optional[ConsoleUI] = None):
        self.args = args
        self.ui = ui or ConsoleUI()
        self._configure_logging(getattr(args, "verbose", False))

        self.config_manager = SharedConfigManager(getattr(args, "config_dir", None))
        self.config = self.config_manager.load()

        aggregate = getattr(args, "aggregate_dirs", False) or self.config.aggregate_directory_sizes
        self.orchestrator = ScanOrchestrator(RuleWalker(aggregate_directory_sizes=aggregate))
        self.findings = FindingList()

        self._channel: Optional[ScanChannel] = None
        self._shutdown_requested = False

    def _configure_logging(self, verbose: bool):
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.WARNING,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=self.ui.console, show_path=False)],
            force=True,
        )

    # -- signal handling ----------------------------------------------------

    def _signal_handler(self, signum, frame):
        if self._shutdown_requested:
            sys.exit(EXIT_FAILURE)
        self._shutdown_requested = True
        self.ui.print_warning("\nCancelling scan... press Ctrl+C again to force quit.")
        if self._channel is not None:
            self._channel.cancel()

    def _install_signal_handlers(self) -> dict:
        previous = {signal.SIGINT: signal.signal(signal.SIGINT, self._signal_handler)}
        if hasattr(signal, "SIGTERM"):
            previous[signal.SIGTERM] = signal.signal(signal.SIGTERM, self._signal_handler)
        return previous

    # -- configuration -------------------------------------------------------

    def show_config(self):
        rules_path = self.config_manager.find_rules_file(getattr(self.args, "rules", None), self.config)
        settings = self.config.to_dict()
        settings["config_file"] = str(self.config_manager.config_file)
        settings["rules_in_use"] = str(rules_path) if rules_path else None
        self.ui.print_header("Kenosis", "Configuration")
        self.ui.show_configuration(settings)

    def load_rules(self) -> Optional[pathlib.Path]:
        """Find and load the rules file; returns its path or None on failure"""
        explicit = getattr(self.args, "rules", None)
        rules_path = self.config_manager.find_rules_file(explicit, self.config)
        if rules_path is None:
            tried = ", ".join(str(p) for p in self.config_manager.rules_candidates(explicit, self.config))
            self.ui.print_error(f"No rules file found. Tried: {tried}")
            return None

        if not self.orchestrator.load_rules(rules_path):
            status = self.orchestrator.load_status.value if self.orchestrator.load_status else "unknown"
            self.ui.print_error(f"Could not load rules from {rules_path} ({status})")
            return None

        if explicit and getattr(self.args, "remember", False):
            self.config.rules_file = str(rules_path.resolve())
            self.config_manager.save(self.config)
            self.ui.print_info(f"Default rules file set to {format_path_for_display(self.config.rules_file)}")

        return rules_path

    # -- scanning ------------------------------------------------------------

    def scan(self) -> ScanSession:
        """Run the scan in the background and drain its events into the progress display"""
        self.findings.clear()
        progress = self.ui.create_scan_progress()
        with progress:
            task = progress.add_task(PHASE_STARTING, total=None)
            self._channel = self.orchestrator.start_background(self.config.channel_size)
            if self._shutdown_requested:
                self._channel.cancel()
            phase = PHASE_STARTING
            try:
                for event in self._channel:
                    if isinstance(event, FindingDiscovered):
                        self.findings.add(event.finding)
                    elif isinstance(event, PhaseChanged):
                        phase = escape(event.phase)
                        progress.update(task, description=phase)
                    elif isinstance(event, ProgressUpdated) and event.files_scanned % PROGRESS_EVERY == 0:
                        progress.update(
                            task,
                            description=(
                                f"{phase} | {event.files_scanned:,} entries | "
                                f"[dim]{escape(truncate_path(format_path_for_display(event.current_path)))}[/dim]"
                            ),
                        )
            finally:
                channel, self._channel = self._channel, None
                # Nobody reads the channel past this point
                channel.cancel()
                channel.join()

        return channel.session

    # -- reporting -----------------------------------------------------------

    def report(self, session: ScanSession):
        self.ui.show_table(
            "Rules",
            [
                ("Rule", {"style": "cyan"}),
                ("Location", {"style": "dim"}),
                ("Status", {"justify": "center"}),
                ("Items", {"justify": "right"}),
                ("Size", {"justify": "right", "style": "yellow"}),
            ],
            [
                (
                    escape(report.rule.id) or "-",
                    escape(format_path_for_display(report.root)),
                    _OUTCOME_LABELS[report.outcome],
                    f"{report.matched:,}",
                    format_bytes(report.bytes),
                )
                for report in session.rule_reports
            ],
        )

        if not self.findings.count:
            self.ui.print_success("No reclaimable entries found!")
            return

        top = max(0, getattr(self.args, "top", 20))
        if top:
            self.ui.console.print()
            self.ui.show_table(
                f"Largest {min(top, self.findings.count)} of {self.findings.count:,} findings",
                [
                    ("Size", {"justify": "right", "style": "yellow"}),
                    ("Modified", {"style": "dim"}),
                    ("Path", {"overflow": "fold"}),
                    ("Why", {"style": "dim"}),
                ],
                [
                    (
                        format_bytes(f.bytes),
                        format_timestamp(f.mtime),
                        escape(format_path_for_display(f.path)),
                        escape(f.explain),
                    )
                    for f in self.findings.largest(top)
                ],
            )

        self.ui.console.print()
        self.ui.print_info(
            f"Total reclaimable: {format_bytes(session.bytes_found)}  "
            f"({session.files_scanned:,} entries from {len(self.findings.by_rule())} rules)"
        )
        if not self.orchestrator.walker.aggregate_directory_sizes:
            self.ui.print_plain("[dim]Directories count as 0 B; use --aggregate-dirs to include their contents.[/dim]")
        self.ui.print_info(f"Scan completed in {session.duration:.1f}s")

    # -- main entry point ----------------------------------------------------

    def run(self) -> int:
        if getattr(self.args, "show_config", False):
            self.show_config()
            return EXIT_OK

        rules_path = self.load_rules()
        if rules_path is None:
            return EXIT_FAILURE

        rule_count = len(self.orchestrator.rules)
        self.ui.print_header(
            "Kenosis", f"{rule_count} rule{'s' if rule_count != 1 else ''} from {format_path_for_display(str(rules_path))}"
        )

        previous = self._install_signal_handlers()
        try:
            session = self.scan()
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)

        self.report(session)

        if session.cancelled:
            self.ui.print_warning("Scan cancelled; results are incomplete.")
            return EXIT_CANCELLED

        self.config.record_run(session.bytes_found)
        self.config_manager.save(self.config)
        return EXIT_OK


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kenosis",
        description="Kenosis: find reclaimable disk space (report only, never deletes)",
    )
    parser.add_argument("rules", nargs="?", help="Rules file (default: rules/safe_caches.yaml or the configured file)")
    parser.add_argument(
        "--remember", action="store_true", help="Use the given rules file as the default for future runs"
    )
    parser.add_argument(
        "--aggregate-dirs", action="store_true", help="Report directories with the total size of the files inside"
    )
    parser.add_argument("--top", type=int, default=20, help="Number of largest findings to list (default: 20)")
    parser.add_argument("--show-config", action="store_true", help="Show settings and the rules file in use")
    parser.add_argument("--config-dir", type=pathlib.Path, default=None, help="Configuration directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    app = Kenosis(args)
    return app.run()


if __name__ == "__main__":
    sys.exit(main())
