"""
Output utilities using Rich for CLI display.
Minimal, clean, and consistent styling.
"""

import time
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.tree import Tree

from .engine import Diagnostic

# Global console instance
console = Console()

# Outcome prefix -> style used when rendering diagnostics
OUTCOME_STYLES = {
    "MATCH": "green",
    "FOUND": "green",
    "ILLEGAL": "red",
    "MISSING": "red",
    "ERROR": "bold red",
}
DEFAULT_OUTCOME_STYLE = "yellow"


def _style_for(message: str) -> str:
    prefix = message.split(":", 1)[0]
    return OUTCOME_STYLES.get(prefix, DEFAULT_OUTCOME_STYLE)


def _format_message(key: str, message: str) -> str:
    return f"[{_style_for(message)}]{escape(key)}: {escape(message)}[/]"


def build_diagnostics_tree(diagnostics: Diagnostic, label: str = "rules") -> Tree:
    """Render a diagnostics tree as a rich ``Tree``."""
    tree = Tree(f"[bold]{escape(label)}[/bold]")
    _fill_tree(tree, diagnostics)
    return tree


def _fill_tree(tree: Tree, diag: Diagnostic) -> None:
    for key, value in diag.messages.items():
        if isinstance(value, list):
            branch = tree.add(escape(key))
            for message in value:
                branch.add(_format_message(key, message))
        else:
            tree.add(_format_message(key, value))
    for key, child in diag.children.items():
        _fill_tree(tree.add(f"[bold]{escape(key)}[/bold]"), child)


class OutputManager:
    """Manages clean, consistent output for treelint."""

    def __init__(self):
        self.start_time = None

    def start_timing(self):
        """Start timing for operations."""
        self.start_time = time.time()

    def get_elapsed_time(self):
        """Get elapsed time since start_timing() was called."""
        if self.start_time is None:
            return 0.0
        return time.time() - self.start_time

    def print_checking_tree(self, root_path: str):
        """Print the tree being checked."""
        console.print(f"Checking tree: [bold cyan]{root_path}[/bold cyan]")

    def print_using_rules(self, rules_name: str):
        """Print rule file being used."""
        console.print(f"Using rules: [bold]{rules_name}[/bold]")

    def print_no_rules(self):
        """Print message when no rule file was found."""
        console.print("No rule file found, nothing to check")

    def print_success(self, message: str):
        """Print success message with green checkmark."""
        console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str, path: str = None):
        """Print error message with red X."""
        if path:
            console.print(f"[red]✗ {message} '[bold red]{path}[/bold red]'[/red]")
        else:
            console.print(f"[red]✗ {message}[/red]")

    def print_warning(self, message: str, path: str = None):
        """Print warning message with yellow warning triangle."""
        if path:
            console.print(
                f"[yellow]⚠ {message} '[bold yellow]{path}[/bold yellow]'[/yellow]"
            )
        else:
            console.print(f"[yellow]⚠ {message}[/yellow]")

    def print_usage_error(self, prog: str, message: str):
        """Print argument parsing error with rich formatting."""
        console.print(f"[red]✗ Error:[/red] {message}")
        console.print(f"\nFor help, use: [bold cyan]{prog} --help[/bold cyan]")

    def print_diagnostics(self, diagnostics: Diagnostic, label: str = "rules"):
        """Print the evidence recorded while matching a rule tree."""
        console.print(build_diagnostics_tree(diagnostics, label))

    def show_progress(self, description: str):
        """Show animated progress spinner."""
        return Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            console=console,
        )

    def print_summary_success(
        self,
        root_path: str,
        rules_name: str = None,
        checks_run: int = 0,
    ):
        """Print success summary panel."""
        elapsed = self.get_elapsed_time()

        content = "Tree validation completed successfully\n\n"
        content += f"Tree: [bold cyan]{root_path}[/bold cyan]\n"
        if rules_name:
            content += f"Rules: [bold]{rules_name}[/bold]\n"
        if checks_run > 0:
            content += f"Checks run: [bold]{checks_run}[/bold]\n"
        content += "Issues found: [bold]0[/bold]\n"
        content += f"Time taken: [dim]{elapsed:.1f} seconds[/dim]"

        panel = Panel(content, title="Summary", border_style="green")
        console.print(panel)

    def print_summary_failure(
        self,
        root_path: str,
        rules_name: str = None,
        checks_run: int = 0,
        issues: list = None,
    ):
        """Print failure summary panel."""
        elapsed = self.get_elapsed_time()
        issue_count = len(issues) if issues else 0

        content = "Tree validation failed\n\n"
        content += f"Tree: [bold cyan]{root_path}[/bold cyan]\n"
        if rules_name:
            content += f"Rules: [bold]{rules_name}[/bold]\n"
        if checks_run > 0:
            content += f"Checks run: [bold]{checks_run}[/bold]\n"
        content += f"Issues found: [bold red]{issue_count}[/bold red]\n"
        content += f"Time taken: [dim]{elapsed:.1f} seconds[/dim]"

        if issues:
            content += "\n\n"
            for issue in issues:
                content += f"[red]✗ {escape(issue)}[/red]\n"

        panel = Panel(content, title="Summary", border_style="red")
        console.print(panel)


# Global output manager instance
output = OutputManager()
