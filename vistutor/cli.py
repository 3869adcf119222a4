#!/usr/bin/env python3
"""
vistutor - interactive visualization tutorial runner

Usage:
    vistutor --list
    vistutor -i
    vistutor my-tutorial.md --watch ~/viz-work
    vistutor interactive-viz --export tutorial.html --run-all
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from .config import load_config, load_settings, workspace_dir
from .errors import LoadError, VistutorError
from .export import export_document
from .logs import setup_logging, verbosity_to_level
from .render import datasets_table, render_fault, render_output, render_progress, sections_table
from .tutorial.controller import TutorialController
from .tutorial.datasets import list_builtin_datasets
from .tutorial.document import list_builtin_documents, resolve_document
from .tutorial.state import ExecutionFault, LearnerState

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT = 'interactive-viz'


def _flag(cli_value: Optional[bool], key: str) -> Optional[bool]:
    """Explicit CLI flag, else an explicit config value, else let the document decide"""
    if cli_value is not None:
        return cli_value
    config = load_config()
    if key in config:
        return bool(config[key])
    return None


def list_content(console: Console):
    table = Table(title="Bundled tutorials")
    table.add_column("Name", style="cyan")
    for name in list_builtin_documents():
        table.add_row(name)
    console.print(table)

    table = Table(title="Bundled datasets")
    table.add_column("Source", style="cyan")
    for name in list_builtin_datasets():
        table.add_row(f"builtin:{name}")
    console.print(table)


def show_overview(controller: TutorialController, learner: LearnerState, console: Console):
    """Title, sections and datasets of a document"""
    document = controller.document
    console.print(f"\n[bold blue]{document.title}[/bold blue]")
    if document.description:
        console.print(document.description.strip())
    console.print()
    lock_states = learner.lock_states(document.section_ids)
    console.print(sections_table(document.sections, lock_states, learner.completed))
    if len(document.datasets):
        console.print(datasets_table(document.datasets))
    console.print("\n[dim]Start with 'vistutor -i' or 'vistutor --watch DIR'.[/dim]")


def run_all(controller: TutorialController, learner: LearnerState, console: Console, artifacts: Path) -> int:
    """
    Run every exercise with its current code, advancing sections as they pass.

    Returns the number of failing exercises.
    """
    failures = 0
    for section in controller.document.sections:
        if not learner.is_unlocked(section.id):
            console.print(f"[dim]Stopping at locked section: {section.title}[/dim]")
            break
        console.print(f"\n[bold blue]{section.position + 1}. {section.title}[/bold blue]")

        section_ok = True
        for exercise in section.exercises:
            result = controller.rerun(exercise.id)
            console.print(f"[cyan]{exercise.id}[/cyan]")
            if isinstance(result, ExecutionFault):
                console.print(render_fault(result))
                failures += 1
                section_ok = False
            else:
                console.print(render_output(result, artifacts / exercise.id))

        if section_ok:
            controller.advance(learner, section.id)

    console.print(render_progress(controller.progress(learner)))
    return failures


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""

    parser = argparse.ArgumentParser(
        description='vistutor - turn static charts and maps into interactive widgets, one exercise at a time',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vistutor --list                             # Bundled tutorials and datasets
  vistutor                                    # Overview of the default tutorial
  vistutor -i                                 # Work through it in the REPL
  vistutor -i --allow-skip                    # Allow skipping sections
  vistutor --watch ~/viz-work                 # Edit exercises in your own editor
  vistutor notes.md -i                        # Run your own Markdown tutorial
  vistutor --run-all --export out.html        # Run everything, save an HTML page
        """
    )

    parser.add_argument('document', nargs='?', default=DEFAULT_DOCUMENT,
                        help=f'Bundled tutorial name or document path (default: {DEFAULT_DOCUMENT})')
    parser.add_argument('--list', action='store_true', help='List bundled tutorials and datasets')
    parser.add_argument('-i', '--interactive', action='store_true', help='Start the interactive REPL')
    parser.add_argument('--watch', metavar='DIR', nargs='?', const='',
                        help='Write exercises to DIR (default: configured workspace) and run them on save')
    parser.add_argument('--export', metavar='FILE', help='Export the document as HTML')
    parser.add_argument('--run-all', action='store_true',
                        help='Run every exercise with its current code before exporting or showing')
    parser.add_argument('--no-progressive', dest='progressive', action='store_false', default=None,
                        help='Unlock every section up front')
    parser.add_argument('--allow-skip', dest='allow_skip', action='store_true', default=None,
                        help='Allow skipping a section without completing it')
    parser.add_argument('--timeout', type=float, metavar='SECONDS',
                        help='Wall-clock limit for one exercise run')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='More logging (-v info, -vv debug)')

    args = parser.parse_args(argv)

    settings = load_settings()
    setup_logging(verbosity_to_level(args.verbose, settings['log_level']))
    console = Console()

    if args.list:
        list_content(console)
        return 0

    try:
        document = resolve_document(args.document)
    except LoadError as e:
        console.print(f"[red]Could not load tutorial: {e}[/red]")
        return 1

    controller = TutorialController(
        document,
        progressive=_flag(args.progressive, 'progressive'),
        allow_skip=_flag(args.allow_skip, 'allow_skip'),
        timeout=args.timeout if args.timeout is not None else float(settings['timeout_seconds']),
    )
    learner = controller.new_learner_state()
    workspace = Path(args.watch).expanduser() if args.watch else workspace_dir()
    logger.debug("Workspace: %s", workspace)

    exit_code = 0
    try:
        if args.run_all:
            exit_code = 1 if run_all(controller, learner, console, workspace / 'outputs') else 0

        if args.interactive:
            from .repl import TutorialREPL
            TutorialREPL(controller, learner=learner, console=console, workspace=workspace).run()
        elif args.watch is not None:
            from .tutorial.file_watcher import FileWatcher
            watcher = FileWatcher(controller, workspace, learner=learner, console=console)
            watcher.start()
            watcher.wait()
        elif not args.export and not args.run_all:
            show_overview(controller, learner, console)

        if args.export:
            path = export_document(document, args.export, learner)
            console.print(f"[green]Exported to {path}[/green]")
    except VistutorError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    return exit_code


if __name__ == '__main__':
    sys.exit(main())
