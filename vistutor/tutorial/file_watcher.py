#!/usr/bin/env python3
"""
File watcher for watch mode.
Writes each unlocked exercise to <workspace>/<exercise_id>.py and runs it
every time the learner saves the file.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from rich.console import Console
from rich.panel import Panel
from watchdog.events import FileModifiedEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..render import render_fault, render_output, render_progress
from .controller import TutorialController
from .state import ExecutionFault, ExerciseStatus, LearnerState

logger = logging.getLogger(__name__)

OUTPUTS_DIRNAME = 'outputs'


@dataclass
class WatchSession:
    """Tracks the state of a file-based session"""
    workspace: Path
    learner: LearnerState
    written: Dict[str, Path] = field(default_factory=dict)
    all_complete: bool = False


def exercise_path(workspace: Path, exercise_id: str) -> Path:
    return Path(workspace) / f"{exercise_id}.py"


class ExerciseFileHandler(FileSystemEventHandler):
    """Runs an exercise when its file is saved"""

    DEBOUNCE_SECONDS = 1.0

    def __init__(
        self,
        controller: TutorialController,
        session: WatchSession,
        console: Console = None,
    ):
        super().__init__()
        self.controller = controller
        self.session = session
        self.console = console or Console()
        self.last_modified: Dict[str, float] = {}
        self.last_content: Dict[str, str] = {}

    def on_modified(self, event):
        """Called when a file in the workspace is modified"""
        if not isinstance(event, FileModifiedEvent):
            return

        path = Path(event.src_path)
        if path.suffix != '.py' or path.parent.resolve() != Path(self.session.workspace).resolve():
            return
        exercise_id = path.stem
        if exercise_id not in self.session.written:
            return

        # Editors often write twice per save
        now = time.time()
        if now - self.last_modified.get(exercise_id, 0) < self.DEBOUNCE_SECONDS:
            return
        self.last_modified[exercise_id] = now

        try:
            code = path.read_text(encoding='utf-8')
        except OSError as e:
            self.console.print(f"[red]Error reading {path.name}: {e}[/red]")
            return

        if code == self.last_content.get(exercise_id):
            return
        self.last_content[exercise_id] = code

        thread = threading.Thread(target=self.review, args=(exercise_id, code))
        thread.daemon = True
        thread.start()

    def review(self, exercise_id: str, code: str):
        """Run the saved code and show the result"""
        self.console.print(f"\n[dim]{'─' * 70}[/dim]")
        self.console.print(f"[cyan]Running {exercise_id}...[/cyan]")

        result = self.controller.submit(exercise_id, code)
        if isinstance(result, ExecutionFault):
            self.console.print(render_fault(result))
            self.console.print("[dim]Fix the code and save to try again.[/dim]")
            return

        artifact = Path(self.session.workspace) / OUTPUTS_DIRNAME / exercise_id
        self.console.print(render_output(result, artifact))
        self._advance_if_done(exercise_id)

    def _advance_if_done(self, exercise_id: str):
        """Complete the section once all of its exercises pass"""
        exercise = self.controller.get_exercise(exercise_id)
        section = self.controller.document.get_section(exercise.section_id)
        if any(item.status != ExerciseStatus.SUCCEEDED for item in section.exercises):
            return

        if section.id not in self.session.learner.completed:
            result = self.controller.advance(self.session.learner, section.id)
            self.console.print(f"\n[green]Section complete: {section.title}[/green]")
            if result.unlocked:
                unlocked = self.controller.document.get_section(result.unlocked)
                self.console.print(f"[cyan]Unlocked: {unlocked.title}[/cyan]")

        sync_workspace(self.controller, self.session, self.console)
        self.console.print(render_progress(self.controller.progress(self.session.learner)))

        if len(self.session.learner.completed) == len(self.controller.document.sections):
            self.session.all_complete = True
            self._show_completion_message()

    def _show_completion_message(self):
        self.console.print(f"\n[bold green]{'=' * 70}[/bold green]")
        self.console.print("[bold green]Tutorial complete![/bold green]")
        self.console.print(f"[bold green]{'=' * 70}[/bold green]")
        self.console.print("\n[dim]Press Ctrl+C to exit[/dim]")


def sync_workspace(controller: TutorialController, session: WatchSession, console: Optional[Console] = None):
    """
    Write files for newly unlocked exercises.

    Sections with no exercises are completed as soon as they are reached.
    Existing files are left alone so earlier edits survive a restart.
    """
    workspace = Path(session.workspace)
    workspace.mkdir(parents=True, exist_ok=True)

    changed = True
    while changed:
        changed = False
        for section in controller.visible_sections(session.learner):
            if not section.exercises and section.id not in session.learner.completed:
                controller.advance(session.learner, section.id)
                changed = True
            for exercise in section.exercises:
                if exercise.id in session.written:
                    continue
                path = exercise_path(workspace, exercise.id)
                if not path.exists():
                    path.write_text(exercise.default_code + '\n', encoding='utf-8')
                session.written[exercise.id] = path
                if console is not None:
                    console.print(f"[green]Created {path.name}[/green] [dim]({section.title})[/dim]")

    if len(session.learner.completed) == len(controller.document.sections):
        session.all_complete = True


class FileWatcher:
    """Manages the file watching process"""

    def __init__(
        self,
        controller: TutorialController,
        workspace: Path,
        learner: Optional[LearnerState] = None,
        console: Console = None,
    ):
        self.controller = controller
        self.session = WatchSession(
            workspace=Path(workspace).expanduser(),
            learner=learner or controller.new_learner_state(),
        )
        self.console = console or Console()
        self.observer = None
        self.handler = None

    def start(self):
        """Write exercise files and start watching the workspace"""
        sync_workspace(self.controller, self.session, self.console)

        self.handler = ExerciseFileHandler(
            controller=self.controller,
            session=self.session,
            console=self.console,
        )
        self.observer = Observer()
        self.observer.schedule(self.handler, path=str(self.session.workspace), recursive=False)
        self.observer.start()
        logger.info("Watching %s", self.session.workspace)

        self.console.print(Panel(
            f"Open the exercise files in [cyan]{self.session.workspace}[/cyan] in your editor.\n"
            f"Each save runs the exercise; outputs land in [cyan]{OUTPUTS_DIRNAME}/[/cyan].",
            title=self.controller.document.title,
            border_style="blue",
        ))

    def stop(self):
        """Stop watching"""
        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None

    def wait(self):
        """Wait until every section is complete or interrupted"""
        try:
            while not self.session.all_complete:
                time.sleep(0.5)
        except KeyboardInterrupt:
            self.console.print("\n[dim]Stopping file watcher...[/dim]")
        finally:
            self.stop()
