from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Sequence
from pathlib import Path, PurePosixPath

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt

from .apply import apply_changes
from .backup import BackupSession
from .config import Config
from .context import build_context
from .credentials import ENV_FILENAME, resolve_api_key, save_key_to_env_file
from .discover import DEFAULT_EXCLUDES, ExclusionRules
from .extract import extract_changes
from .generation import GenerationError, Generator, OpenAICompatibleGenerator
from .inventory import FileInventory, ScanReport
from .model import ApplyResult, ChangeRecord
from .project import ProjectInfo, detect_project_type
from .prompt import build_prompt

HELP_TEXT = """\
Available commands:
  help        Show this help message
  scan        Rescan project files
  list        List all tracked files
  info        Show project information
  exit, quit  Exit

Anything else is sent as a change request:
  1. The highest-priority project files (within the context budget) are sent
     to the generation service together with your request.
  2. The proposed file changes are listed for review.
  3. Nothing is written until you confirm.
  4. Modified and deleted files are backed up first under the backups folder.

Example requests:
  Add error handling to the login function
  Create unit tests for the auth module
  Convert the data loader to async/await"""


def backups_rel_dir(backups_root: Path, root: Path) -> str | None:
    """Root-relative POSIX path of the backups folder, or None if outside root."""
    try:
        rel = backups_root.resolve().relative_to(root.resolve())
    except ValueError:
        return None
    rel_s = rel.as_posix()
    return rel_s if rel_s != "." else None


def build_exclusions(cfg: Config, project: ProjectInfo) -> ExclusionRules:
    rules = ExclusionRules(DEFAULT_EXCLUDES)
    rules.extend(project.extra_excludes)
    rules.extend(cfg.exclude)
    return rules


def render_change_preview(records: Sequence[ChangeRecord], console: Console) -> None:
    console.print(
        f"Proposed changes: {len(records)} file(s)\n", highlight=False
    )
    for i, rec in enumerate(records, 1):
        console.print(
            f"{i}. [bold]{rec.action.upper()}[/bold] {escape(rec.path)}",
            highlight=False,
        )
        console.print(f"   {escape(rec.explanation)}", highlight=False)
        if rec.action != "delete":
            if rec.has_code:
                console.print(
                    f"   Content: {rec.payload_lines} lines, "
                    f"{len(rec.payload)} characters",
                    highlight=False,
                )
            else:
                console.print("   Content: none provided", highlight=False)
        console.print()


def render_apply_report(result: ApplyResult, root: Path, console: Console) -> None:
    for outcome in result.outcomes:
        rec = outcome.record
        path = escape(rec.path)
        if outcome.status == "applied":
            console.print(f"[green]OK[/green]      {rec.action} {path}", highlight=False)
        elif outcome.status == "not_found":
            console.print(
                f"[yellow]SKIPPED[/yellow] {rec.action} {path}: not found",
                highlight=False,
            )
        else:
            console.print(
                f"[red]FAILED[/red]  {rec.action} {path}: {escape(outcome.reason)}",
                highlight=False,
            )

    console.print()
    console.print(f"Successful: {result.success_count}", highlight=False)
    if result.not_found_count:
        console.print(f"Not found: {result.not_found_count}", highlight=False)
    if result.error_count:
        console.print(
            f"Errors: {result.error_count} (earlier changes were kept; "
            "nothing was rolled back)",
            highlight=False,
        )
    if result.backed_up:
        try:
            where = result.backup_dir.relative_to(root).as_posix()
        except ValueError:
            where = result.backup_dir.as_posix()
        console.print(
            f"Backups ({len(result.backed_up)} file(s)) stored in: {escape(where)}/",
            highlight=False,
        )
    else:
        console.print("No backups were needed.", highlight=False)


class Session:
    """One operator session bound to a project root.

    Owns the exclusion rules and the file inventory. Requests are built from
    the inventory as it stands; a successful apply patches it in place.
    """

    def __init__(
        self,
        root: Path,
        cfg: Config,
        *,
        console: Console | None = None,
        generator: Generator | None = None,
        confirm: Callable[[str], bool] | None = None,
        ask: Callable[[str], str] | None = None,
    ) -> None:
        self.root = root.resolve()
        self.cfg = cfg
        self.console = console or Console(soft_wrap=True)
        self.project = detect_project_type(self.root)
        self.exclusions = build_exclusions(cfg, self.project)
        backups_dir = backups_rel_dir(self.backups_root, self.root)
        self.inventory = FileInventory(
            self.exclusions,
            max_depth=cfg.max_depth,
            max_file_chars=cfg.max_file_chars,
            respect_gitignore=cfg.respect_gitignore,
            encoding_errors=cfg.encoding_errors,
            excluded_dirs=[backups_dir] if backups_dir else (),
        )
        self._generator = generator
        self._confirm = confirm or (
            lambda q: Confirm.ask(q, default=False, console=self.console)
        )
        self._ask = ask or (lambda q: Prompt.ask(q, console=self.console))
        self._ask_secret = ask or (
            lambda q: Prompt.ask(q, console=self.console, password=True)
        )

    @property
    def backups_root(self) -> Path:
        return self.root / self.cfg.backups_dir

    def scan(self) -> ScanReport:
        report = self.inventory.scan(self.root)
        for rel, reason in report.skipped:
            self.console.print(
                f"[yellow]Warning:[/yellow] skipped {escape(rel)} ({escape(reason)})",
                highlight=False,
            )
        return report

    def list_files(self) -> None:
        self.console.print("Tracked files:")
        if not len(self.inventory):
            self.console.print('  No files found. Run "scan" to refresh.')
            return
        for rel in sorted(self.inventory):
            self.console.print(f"  - {escape(rel)}", highlight=False)

    def show_info(self) -> None:
        self.console.print("Project information:")
        self.console.print(f"  Type: {self.project.project_type}", highlight=False)
        self.console.print(f"  Root: {escape(self.root.as_posix())}", highlight=False)
        self.console.print(f"  Files tracked: {len(self.inventory)}", highlight=False)
        exts = Counter(
            PurePosixPath(rel).suffix or "no extension" for rel in self.inventory
        )
        if exts:
            self.console.print("  File types:")
            for ext, n in exts.most_common():
                self.console.print(f"    {ext}: {n} files", highlight=False)

    def ensure_generator(self) -> Generator:
        if self._generator is not None:
            return self._generator
        name = self.cfg.api_key_env
        key = resolve_api_key(self.root, name)
        if not key:
            self.console.print(f"{name} is not set (environment or {ENV_FILENAME}).")
            key = self._ask_secret(f"Paste your {name}").strip()
            if not key:
                raise GenerationError("An API key is required", kind="auth")
            env_path = save_key_to_env_file(self.root, name, key)
            self.exclusions.add(ENV_FILENAME)
            self.console.print(
                f"Saved {name} to {escape(env_path.name)}", highlight=False
            )
        self._generator = OpenAICompatibleGenerator(
            key, model=self.cfg.model, base_url=self.cfg.base_url
        )
        return self._generator

    def generate_response(self, request: str) -> str:
        """Send ``request`` with the current context; raises GenerationError."""
        bundle = build_context(self.inventory, self.cfg.context_budget)
        if bundle.truncated:
            self.console.print(
                f"[yellow]Warning:[/yellow] context budget reached; including "
                f"{bundle.files_included}/{bundle.files_total} files",
                highlight=False,
            )
        prompt = build_prompt(request, bundle, self.project.project_type)
        generator = self.ensure_generator()
        with self.console.status("Waiting for the generation service..."):
            return generator.generate(prompt)

    def process_request(
        self, request: str, *, assume_yes: bool = False
    ) -> ApplyResult | None:
        try:
            response = self.generate_response(request)
        except GenerationError as e:
            self.console.print(
                f"[red]Error processing request:[/red] {escape(str(e))}",
                highlight=False,
            )
            self.console.print(f"Hint: {e.hint}", highlight=False)
            return None
        return self.review_and_apply(response, assume_yes=assume_yes)

    def review_and_apply(
        self, response: str, *, assume_yes: bool = False
    ) -> ApplyResult | None:
        records = extract_changes(response)
        if not records:
            self.console.print("No actionable changes found in the response:\n")
            self.console.print(response, markup=False, highlight=False)
            return None

        render_change_preview(records, self.console)
        if not assume_yes:
            self.console.print(
                "These changes will be written to your files immediately. "
                "Commit your current work first if you want an easy way back."
            )
            if not self._confirm("Apply these changes?"):
                self.console.print("Changes cancelled; no files were modified.")
                return None

        session = BackupSession.start(self.backups_root)
        result = apply_changes(records, self.inventory, self.root, session)
        render_apply_report(result, self.root, self.console)
        return result

    def handle(self, line: str) -> bool:
        """Run one command or request; return False when the session should end."""
        text = line.strip()
        if not text:
            return True
        cmd = text.lower()
        if cmd == "help":
            self.console.print(HELP_TEXT, markup=False, highlight=False)
        elif cmd == "scan":
            report = self.scan()
            self.console.print(f"Found {report.file_count} files", highlight=False)
        elif cmd == "list":
            self.list_files()
        elif cmd == "info":
            self.show_info()
        elif cmd in {"exit", "quit"}:
            self.console.print("Goodbye!")
            return False
        else:
            self.process_request(text)
        return True

    def run(self) -> None:
        self.console.print(
            f"termcoder: {self.project.project_type} project at "
            f"{escape(self.root.as_posix())}",
            highlight=False,
        )
        report = self.scan()
        self.console.print(
            f"Tracking {report.file_count} files. Type 'help' for commands.",
            highlight=False,
        )
        while True:
            try:
                line = self._ask(">")
            except (EOFError, KeyboardInterrupt):
                self.console.print()
                break
            if not self.handle(line):
                break
