#!/usr/bin/env python3
"""
Isolated execution of exercise code.

Each run gets a fresh namespace holding copies of the datasets and the
plotting libraries, executes the fragment in a worker thread under a
wall-clock guard, and classifies whatever the fragment produced into an
Output. Failures come back as an ExecutionFault; nothing here raises on
bad learner code.

A run that passes its deadline is cancelled: the worker thread traces
itself and raises ExerciseCancelled at the next line or call once the
deadline has passed. The capture window stays closed to other runs until
the worker has unwound.
"""

import ast
import contextlib
import io
import logging
import sys
import threading
import traceback
import warnings
from typing import Dict, List, Optional, Tuple, Union

import matplotlib

matplotlib.use('Agg')

import folium
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import seaborn as sns
from matplotlib.artist import Artist
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from ..widgets import MapBuilder, MapWidget, PlotlyWidget, WidgetHandle, interactive, leaflet
from .datasets import DatasetContext
from .state import ExecutionFault, Output, OutputKind

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
SETUP_FILENAME = '<setup>'
# time a cancelled run gets to unwind before it counts as stuck
CANCEL_GRACE = 2.0

# stdout, warning filters and the pyplot figure registry are process-wide,
# so only one run may hold the capture window at a time
_RUN_LOCK = threading.Lock()

# cancelled runs still blocked in native code; guarded by _RUN_LOCK
_STUCK: List[threading.Thread] = []


class ExerciseCancelled(BaseException):
    """
    Raised inside a fragment that ran past its deadline.

    Not an Exception subclass, so `except Exception` in learner code
    cannot swallow it.
    """


def _cancel_tracer(cancelled: threading.Event, filenames: Tuple[str, ...]):
    """
    Trace function that aborts the traced thread once cancelled is set.

    Every call is checked; line events are only traced in the fragment's
    own frames, so library code runs without per-line overhead.
    """

    def tracer(frame, event, arg):
        if cancelled.is_set():
            raise ExerciseCancelled()
        if event != 'call' or frame.f_code.co_filename in filenames:
            return tracer
        return None

    return tracer


def _stuck_threads() -> List[threading.Thread]:
    _STUCK[:] = [thread for thread in _STUCK if thread.is_alive()]
    return _STUCK


def fragment_filename(exercise_id: str) -> str:
    return f"<exercise:{exercise_id}>"


def build_namespace(datasets: Dict[str, pd.DataFrame]) -> Dict:
    """Globals visible to exercise code"""
    namespace = {
        '__name__': '__exercise__',
        'pd': pd,
        'np': np,
        'plt': plt,
        'sns': sns,
        'px': px,
        'go': go,
        'interactive': interactive,
        'leaflet': leaflet,
    }
    namespace.update(datasets)
    return namespace


def split_trailing_expression(code: str, filename: str) -> Tuple[ast.Module, Optional[ast.Expression]]:
    """Parse code, separating a final bare expression so its value can be shown"""
    tree = ast.parse(code, filename=filename, mode='exec')
    if tree.body and isinstance(tree.body[-1], ast.Expr):
        last = tree.body.pop()
        return tree, ast.Expression(body=last.value)
    return tree, None


def run_fragment(code: str, namespace: Dict, filename: str):
    """Execute code in namespace and return the trailing expression's value"""
    body, trailing = split_trailing_expression(code, filename)
    exec(compile(body, filename, 'exec'), namespace)
    if trailing is None:
        return None
    return eval(compile(trailing, filename, 'eval'), namespace)


def figure_to_png(figure: Figure) -> bytes:
    buffer = io.BytesIO()
    figure.savefig(buffer, format='png', bbox_inches='tight')
    return buffer.getvalue()


def _as_figure(value) -> Optional[Figure]:
    """Find the matplotlib figure behind a figure, axes or seaborn grid"""
    if isinstance(value, Figure):
        return value
    if isinstance(value, Axes):
        return value.figure
    figure = getattr(value, 'figure', None)
    if isinstance(figure, Figure):
        return figure
    return None


def _is_artists(value) -> bool:
    """What plotting calls like ax.plot() or plt.bar() return"""
    if isinstance(value, Artist):
        return True
    return isinstance(value, (list, tuple)) and bool(value) and all(isinstance(item, Artist) for item in value)


def classify(value, stdout: str, new_figures: List[Figure]) -> Output:
    """Turn a fragment's result into an Output"""
    if isinstance(value, WidgetHandle):
        return Output(kind=OutputKind.WIDGET, value=value, stdout=stdout)
    if isinstance(value, MapBuilder):
        return Output(kind=OutputKind.WIDGET, value=value.widget(), stdout=stdout)
    if isinstance(value, go.Figure):
        return Output(kind=OutputKind.WIDGET, value=PlotlyWidget(value), stdout=stdout)
    if isinstance(value, folium.Map):
        return Output(kind=OutputKind.WIDGET, value=MapWidget(value), stdout=stdout)

    figure = _as_figure(value)
    if figure is None and new_figures and (value is None or _is_artists(value)):
        figure = new_figures[-1]
    if figure is not None:
        return Output(kind=OutputKind.IMAGE, value=figure_to_png(figure), stdout=stdout)

    if isinstance(value, pd.DataFrame):
        return Output(kind=OutputKind.TABLE, value=value, stdout=stdout)
    if isinstance(value, pd.Series):
        return Output(kind=OutputKind.TABLE, value=value.to_frame(), stdout=stdout)

    if value is None:
        return Output.text(stdout, stdout=stdout)
    return Output.text(repr(value), stdout=stdout)


def _fault_line(exc: BaseException, filename: str) -> Optional[int]:
    """Line of the fragment where the exception originated"""
    if isinstance(exc, SyntaxError) and exc.filename == filename:
        return exc.lineno
    line = None
    for frame in traceback.extract_tb(exc.__traceback__):
        if frame.filename == filename:
            line = frame.lineno
    return line


def _fault_message(exc: BaseException) -> str:
    if isinstance(exc, KeyError) and len(exc.args) == 1:
        return str(exc.args[0])
    if isinstance(exc, SyntaxError):
        return exc.msg
    return str(exc) or type(exc).__name__


def fault_from_exception(exc: BaseException, filename: str, stdout: str = '') -> ExecutionFault:
    line = _fault_line(exc, filename)
    in_setup = line is None and _fault_line(exc, SETUP_FILENAME) is not None
    message = _fault_message(exc)
    return ExecutionFault(
        message=f"setup code failed: {message}" if in_setup else message,
        line=line,
        error_type=type(exc).__name__,
        stdout=stdout,
    )


class Sandbox:
    """Runs exercise fragments against a dataset context"""

    def __init__(
        self,
        datasets: DatasetContext,
        setup_code: str = '',
        timeout: float = DEFAULT_TIMEOUT,
        cancel_grace: float = CANCEL_GRACE,
    ):
        self.datasets = datasets
        self.setup_code = setup_code or ''
        self.timeout = timeout
        self.cancel_grace = cancel_grace

    def run(self, code: str, exercise_id: str = 'fragment') -> Union[Output, ExecutionFault]:
        """
        Execute one fragment.

        Args:
            code: Learner code
            exercise_id: Used to label tracebacks and locate the failing line

        Returns:
            Output on success, ExecutionFault otherwise
        """
        filename = fragment_filename(exercise_id)
        namespace = build_namespace(self.datasets.snapshot())
        outcome: Dict = {}
        cancelled = threading.Event()

        def worker():
            sys.settrace(_cancel_tracer(cancelled, (filename, SETUP_FILENAME)))
            try:
                if self.setup_code.strip():
                    run_fragment(self.setup_code, namespace, SETUP_FILENAME)
                outcome['value'] = run_fragment(code, namespace, filename)
            except ExerciseCancelled:
                outcome['cancelled'] = True
            except (Exception, SystemExit) as e:
                outcome['error'] = e
            finally:
                sys.settrace(None)

        stdout = io.StringIO()
        with _RUN_LOCK:
            stuck = _stuck_threads()
            for thread in stuck:
                thread.join(self.cancel_grace)
            if _stuck_threads():
                logger.warning("Refusing to run %s while a cancelled exercise is still running", exercise_id)
                return ExecutionFault(
                    message="A timed-out exercise is still stopping; try again shortly",
                    error_type='Busy',
                )

            before = set(plt.get_fignums())
            with warnings.catch_warnings(record=True) as caught, contextlib.redirect_stdout(stdout):
                warnings.simplefilter('always')
                warnings.filterwarnings('ignore', message='.*non-interactive.*')
                thread = threading.Thread(target=worker, name=f"exercise-{exercise_id}", daemon=True)
                thread.start()
                thread.join(self.timeout)
                timed_out = thread.is_alive()
                if timed_out:
                    cancelled.set()
                    thread.join(self.cancel_grace)

            new_numbers = [num for num in plt.get_fignums() if num not in before]
            new_figures = [plt.figure(num) for num in new_numbers]
            try:
                if timed_out:
                    if thread.is_alive():
                        _STUCK.append(thread)
                        logger.warning("Exercise %s is blocked and could not be stopped", exercise_id)
                    else:
                        logger.warning("Exercise %s exceeded %.1fs and was stopped", exercise_id, self.timeout)
                    return ExecutionFault(
                        message=f"Execution timed out after {self.timeout:g} seconds",
                        error_type='TimeoutError',
                        stdout=stdout.getvalue(),
                    )
                if 'error' in outcome:
                    logger.debug("Exercise %s failed", exercise_id, exc_info=outcome['error'])
                    return fault_from_exception(outcome['error'], filename, stdout.getvalue())
                try:
                    output = classify(outcome.get('value'), stdout.getvalue(), new_figures)
                except Exception as e:
                    return fault_from_exception(e, filename, stdout.getvalue())
            finally:
                for figure in new_figures:
                    plt.close(figure)

        output.warnings = [f"{w.category.__name__}: {w.message}" for w in caught]
        return output
