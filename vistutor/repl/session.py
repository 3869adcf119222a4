#!/usr/bin/env python3
"""
Interactive REPL session for working through a tutorial.
"""

import logging
import webbrowser
from pathlib import Path
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax

from ..config import get_config_dir, workspace_dir
from ..errors import InvalidTransition, VistutorError
from ..export import export_document
from ..render import (
    datasets_table,
    render_exercise,
    render_fault,
    render_output,
    render_progress,
    render_section,
    save_artifact,
    sections_table,
)
from ..tutorial.controller import TutorialController
from ..tutorial.state import ExecutionFault, ExerciseBlock, ExerciseStatus, LearnerState, OutputKind, Section
from .commands import get_command_help

logger = logging.getLogger(__name__)


class TutorialREPL:
    """Interactive REPL over a TutorialController"""

    def __init__(
        self,
        controller: TutorialController,
        learner: Optional[LearnerState] = None,
        console: Optional[Console] = None,
        prompt_session: Optional[PromptSession] = None,
        workspace: Optional[Path] = None,
    ):
        self.controller = controller
        self.learner = learner or controller.new_learner_state()
        self.console = console or Console()
        self.workspace = Path(workspace).expanduser() if workspace else workspace_dir()
        self.artifacts_dir = self.workspace / 'outputs'

        if prompt_session is None:
            history_path = get_config_dir() / 'repl_history'
            prompt_session = PromptSession(
                history=FileHistory(str(history_path)),
                auto_suggest=AutoSuggestFromHistory(),
            )
        self.prompt_session = prompt_session

    def run(self):
        """Main REPL loop"""
        self._print_welcome()

        while True:
            try:
                prompt = self._get_prompt()
                user_input = self.prompt_session.prompt(prompt)

                if not user_input.strip():
                    continue

                result = self._process_command(user_input.strip())

                if result == 'exit':
                    self._handle_exit()
                    break

            except KeyboardInterrupt:
                self.console.print("\n[dim]Use 'exit' to quit[/dim]")
            except EOFError:
                self._handle_exit()
                break
            except Exception as e:
                logger.exception("Command failed: %s", user_input)
                self.console.print(f"[red]Error: {e}[/red]")

    def _print_welcome(self):
        document = self.controller.document
        welcome = f"[bold blue]{document.title}[/bold blue]\n"
        if document.description:
            welcome += f"\n{document.description.strip()}\n"
        welcome += (
            "\n[dim]Commands: show, run, edit, next, hint, help\n"
            "Type 'help' for all commands or 'help <cmd>' for details.[/dim]"
        )
        self.console.print(Panel(welcome, border_style="blue"))
        self.console.print(render_section(self.current_section(), self._lock(self.current_section())))

    def _handle_exit(self):
        self.console.print(render_progress(self.controller.progress(self.learner)))
        self.console.print("[dim]Goodbye.[/dim]")

    def _get_prompt(self) -> str:
        return f"vistutor ({self.current_section().id})> "

    def current_section(self) -> Section:
        """First unlocked section not yet finished, else the last unlocked one"""
        visible = self.controller.visible_sections(self.learner)
        for section in visible:
            if section.id not in self.learner.completed and section.id not in self.learner.skipped:
                return section
        return visible[-1]

    def _lock(self, section: Section):
        return self.controller.lock_state(self.learner, section.id)

    def _process_command(self, user_input: str) -> Optional[str]:
        """Process user input and dispatch to handlers"""
        parts = user_input.split(maxsplit=1)
        command = parts[0].lower()
        args = parts[1].strip() if len(parts) > 1 else ''

        handlers = {
            'sections': self._cmd_sections,
            'show': self._cmd_show,
            'datasets': self._cmd_datasets,
            'run': self._cmd_run,
            'edit': self._cmd_edit,
            'reset': self._cmd_reset,
            'hint': self._cmd_hint,
            'solution': self._cmd_solution,
            'open': self._cmd_open,
            'next': self._cmd_next,
            'skip': self._cmd_skip,
            'progress': self._cmd_progress,
            'export': self._cmd_export,
            'help': self._cmd_help,
            'clear': self._cmd_clear,
            'exit': lambda _: 'exit',
            'quit': lambda _: 'exit',
        }

        handler = handlers.get(command)
        if handler is None:
            self.console.print(f"[red]Unknown command: {command}[/red]")
            self.console.print("[dim]Type 'help' for commands.[/dim]")
            return None

        try:
            return handler(args)
        except VistutorError as e:
            self.console.print(f"[red]{e}[/red]")
            return None

    # === Helpers ===

    def _require_arg(self, args: str, usage: str) -> Optional[str]:
        if not args:
            self.console.print(f"[red]Usage: {usage}[/red]")
            return None
        return args.split()[0]

    def _unlocked_exercise(self, exercise_id: str) -> ExerciseBlock:
        """Look up an exercise the learner is allowed to touch"""
        exercise = self.controller.get_exercise(exercise_id)
        if not self.learner.is_unlocked(exercise.section_id):
            raise InvalidTransition(f"Exercise '{exercise_id}' is in a locked section")
        return exercise

    def _show_result(self, exercise: ExerciseBlock, result):
        if isinstance(result, ExecutionFault):
            self.console.print(render_fault(result))
            self.console.print("[dim]Edit the code and run it again, or try 'hint'.[/dim]")
            return

        self.console.print(render_output(result, self.artifacts_dir / exercise.id))
        section = self.controller.document.get_section(exercise.section_id)
        if (
            section.id not in self.learner.completed
            and all(item.status == ExerciseStatus.SUCCEEDED for item in section.exercises)
        ):
            self.console.print("[green]All exercises in this section pass. Type 'next' to continue.[/green]")

    # === Command Handlers ===

    def _cmd_sections(self, args: str) -> None:
        sections = self.controller.document.sections
        lock_states = self.learner.lock_states(self.controller.document.section_ids)
        self.console.print(sections_table(sections, lock_states, self.learner.completed))

    def _cmd_show(self, args: str) -> None:
        """Show a section, or the current one"""
        if args:
            section = self.controller.document.get_section(args)
            if section is None:
                self.console.print(f"[red]Unknown section: {args}[/red]")
                return
        else:
            section = self.current_section()
        self.console.print(render_section(section, self._lock(section)))

    def _cmd_datasets(self, args: str) -> None:
        self.console.print(datasets_table(self.controller.document.datasets))

    def _cmd_run(self, args: str) -> None:
        exercise_id = self._require_arg(args, 'run <exercise_id>')
        if not exercise_id:
            return
        exercise = self._unlocked_exercise(exercise_id)
        with self.console.status(f"[cyan]Running {exercise_id}...[/cyan]"):
            result = self.controller.rerun(exercise_id)
        self._show_result(exercise, result)

    def _cmd_edit(self, args: str) -> None:
        """Read replacement code, then submit it"""
        exercise_id = self._require_arg(args, 'edit <exercise_id>')
        if not exercise_id:
            return
        exercise = self._unlocked_exercise(exercise_id)

        self.console.print("[dim]Edit the code below. Press Esc then Enter to run it.[/dim]")
        code = self.prompt_session.prompt('... ', multiline=True, default=exercise.code)
        if not code.strip():
            self.console.print("[yellow]Empty code, nothing submitted.[/yellow]")
            return

        with self.console.status(f"[cyan]Running {exercise_id}...[/cyan]"):
            result = self.controller.submit(exercise_id, code)
        self._show_result(exercise, result)

    def _cmd_reset(self, args: str) -> None:
        exercise_id = self._require_arg(args, 'reset <exercise_id>')
        if not exercise_id:
            return
        self._unlocked_exercise(exercise_id)
        exercise = self.controller.reset(exercise_id)
        self.console.print(f"[green]Reset {exercise_id} to its original code.[/green]")
        self.console.print(render_exercise(exercise))

    def _cmd_hint(self, args: str) -> None:
        exercise_id = self._require_arg(args, 'hint <exercise_id>')
        if not exercise_id:
            return
        self._unlocked_exercise(exercise_id)
        hint = self.controller.hint(exercise_id)
        if not hint:
            self.console.print(f"[yellow]No hint for {exercise_id}.[/yellow]")
            return
        self.console.print(Panel(Markdown(hint), title="Hint", border_style="yellow"))

    def _cmd_solution(self, args: str) -> None:
        exercise_id = self._require_arg(args, 'solution <exercise_id>')
        if not exercise_id:
            return
        self._unlocked_exercise(exercise_id)
        solution = self.controller.solution(exercise_id)
        if not solution:
            self.console.print(f"[yellow]No solution for {exercise_id}.[/yellow]")
            return
        self.console.print(Panel(Syntax(solution, 'python'), title="Solution", border_style="green"))

    def _cmd_open(self, args: str) -> None:
        """Open a chart or map output in the browser"""
        exercise_id = self._require_arg(args, 'open <exercise_id>')
        if not exercise_id:
            return
        exercise = self._unlocked_exercise(exercise_id)
        output = exercise.output
        if output is None or output.kind not in (OutputKind.IMAGE, OutputKind.WIDGET):
            self.console.print(f"[yellow]{exercise_id} has no chart or map to open. Run it first.[/yellow]")
            return
        path = save_artifact(output, self.artifacts_dir / exercise_id)
        webbrowser.open(path.resolve().as_uri())
        self.console.print(f"[green]Opened {path}[/green]")

    def _cmd_next(self, args: str) -> None:
        section_id = args or self.current_section().id
        result = self.controller.advance(self.learner, section_id)
        section = self.controller.document.get_section(section_id)
        self.console.print(f"[green]Section complete: {section.title}[/green]")

        if result.unlocked:
            unlocked = self.controller.document.get_section(result.unlocked)
            self.console.print(render_section(unlocked, self._lock(unlocked)))
        elif len(self.learner.completed) == len(self.controller.document.sections):
            self.console.print("[bold green]Tutorial complete![/bold green]")

    def _cmd_skip(self, args: str) -> None:
        section_id = args or self.current_section().id
        result = self.controller.skip(self.learner, section_id)
        self.console.print(f"[yellow]Skipped {section_id}.[/yellow]")
        if result.unlocked:
            unlocked = self.controller.document.get_section(result.unlocked)
            self.console.print(render_section(unlocked, self._lock(unlocked)))

    def _cmd_progress(self, args: str) -> None:
        self.console.print(render_progress(self.controller.progress(self.learner)))
        self._cmd_sections('')

    def _cmd_export(self, args: str) -> None:
        path = Path(args).expanduser() if args else self.workspace / 'tutorial.html'
        saved = export_document(self.controller.document, path, self.learner)
        self.console.print(f"[green]Exported to {saved}[/green]")

    def _cmd_help(self, args: str) -> None:
        """Show help"""
        self.console.print(get_command_help(args if args else None), markup=False)

    def _cmd_clear(self, args: str) -> None:
        self.console.clear()
