#!/usr/bin/env python3
"""
Tests for exercise execution and output classification.
"""

import threading

import matplotlib.pyplot as plt
import pytest

from vistutor.tutorial.sandbox import Sandbox, fragment_filename, split_trailing_expression
from vistutor.tutorial.state import ExecutionFault, Output, OutputKind
from vistutor.widgets import MapWidget, PlotlyWidget

PNG_HEADER = b'\x89PNG'


@pytest.fixture
def sandbox(datasets):
    return Sandbox(datasets, timeout=30)


class TestTrailingExpression:
    """Tests for splitting off the displayed value"""

    def test_trailing_expression(self):
        """Test that a final expression is separated"""
        body, trailing = split_trailing_expression('x = 1\nx + 1', '<test>')
        assert len(body.body) == 1
        assert trailing is not None

    def test_no_trailing_expression(self):
        """Test code ending in a statement"""
        body, trailing = split_trailing_expression('x = 1', '<test>')
        assert trailing is None

    def test_filename(self):
        """Test the traceback label for exercises"""
        assert fragment_filename('peek') == '<exercise:peek>'


class TestClassification:
    """Tests for output kinds"""

    def test_text_from_expression(self, sandbox):
        """Test that a plain value is shown as its repr"""
        output = sandbox.run('1 + 1')
        assert output.kind == OutputKind.TEXT
        assert output.value == '2'

    def test_text_from_stdout(self, sandbox):
        """Test that printed text is the output when there is no value"""
        output = sandbox.run('print("hello")')
        assert output.kind == OutputKind.TEXT
        assert output.value == 'hello\n'
        assert output.stdout == 'hello\n'

    def test_table(self, sandbox):
        """Test that DataFrames become tables"""
        output = sandbox.run('Pulse[["Age", "Income"]]')
        assert output.kind == OutputKind.TABLE
        assert output.value.columns.tolist() == ['Age', 'Income']

    def test_series_table(self, sandbox):
        """Test that a Series becomes a one-column table"""
        output = sandbox.run('Pulse.groupby("Gender")["Income"].mean()')
        assert output.kind == OutputKind.TABLE
        assert output.value.shape == (2, 1)

    def test_matplotlib_figure(self, sandbox):
        """Test that a returned figure becomes a PNG"""
        output = sandbox.run('fig, ax = plt.subplots()\nax.plot([1, 2], [3, 4])\nfig')
        assert output.kind == OutputKind.IMAGE
        assert output.value.startswith(PNG_HEADER)

    def test_plot_call_result(self, sandbox):
        """Test that ending with a plotting call still shows the chart"""
        output = sandbox.run('fig, ax = plt.subplots()\nax.plot([1, 2], [3, 4])')
        assert output.kind == OutputKind.IMAGE

    def test_figure_without_value(self, sandbox):
        """Test that the newest figure is shown when nothing is returned"""
        output = sandbox.run('plt.figure()\nplt.bar(["a", "b"], [1, 2])\nx = 1')
        assert output.kind == OutputKind.IMAGE

    def test_seaborn_axes(self, sandbox):
        """Test that seaborn axes become images"""
        output = sandbox.run('sns.scatterplot(data=Pulse, x="Age", y="Income", hue="Gender")')
        assert output.kind == OutputKind.IMAGE
        assert output.value.startswith(PNG_HEADER)

    def test_figures_closed(self, sandbox):
        """Test that runs do not leak pyplot figures"""
        before = plt.get_fignums()
        sandbox.run('fig, ax = plt.subplots()\nfig')
        assert plt.get_fignums() == before

    def test_interactive_chart(self, sandbox):
        """Test that interactive() produces a chart widget"""
        output = sandbox.run('interactive(px.scatter(Pulse, x="Age", y="Income"))')
        assert output.kind == OutputKind.WIDGET
        assert isinstance(output.value, PlotlyWidget)

    def test_bare_plotly_figure(self, sandbox):
        """Test that a plotly figure is wrapped automatically"""
        output = sandbox.run('go.Figure(go.Bar(x=["a"], y=[1]))')
        assert output.kind == OutputKind.WIDGET
        assert output.value.kind == 'chart'

    def test_map_builder(self, sandbox, datasets):
        """Test that a map chain produces a map widget"""
        output = sandbox.run(
            'points = pd.DataFrame({"lat": [-20.4, -26.0], "long": [181.6, 184.1]})\n'
            'leaflet(points).add_markers(lng="long", lat="lat").add_tiles()'
        )
        assert output.kind == OutputKind.WIDGET
        assert isinstance(output.value, MapWidget)


class TestFaults:
    """Tests for failing fragments"""

    def test_missing_column(self, sandbox):
        """Test that a missing column names the column and the line"""
        fault = sandbox.run('cols = ["Age", "Height"]\nPulse[cols]', 'select')
        assert isinstance(fault, ExecutionFault)
        assert fault.error_type == 'KeyError'
        assert 'Height' in fault.message
        assert fault.line == 2

    def test_syntax_error(self, sandbox):
        """Test that syntax errors report their line"""
        fault = sandbox.run('x = 1\ny = (', 'broken')
        assert isinstance(fault, ExecutionFault)
        assert fault.error_type == 'SyntaxError'
        assert fault.line == 2

    def test_undeclared_name(self, sandbox):
        """Test that referencing an unknown dataset fails"""
        fault = sandbox.run('Quakes.head()')
        assert fault.error_type == 'NameError'
        assert 'Quakes' in fault.message

    def test_stdout_kept_on_fault(self, sandbox):
        """Test that output printed before the error is kept"""
        fault = sandbox.run('print("before")\n1 / 0')
        assert fault.error_type == 'ZeroDivisionError'
        assert fault.stdout == 'before\n'

    def test_system_exit(self, sandbox):
        """Test that exit() in exercise code is a fault"""
        fault = sandbox.run('raise SystemExit(3)')
        assert isinstance(fault, ExecutionFault)
        assert fault.error_type == 'SystemExit'

    def test_widget_helper_error(self, sandbox):
        """Test that helper misuse surfaces as a fault"""
        fault = sandbox.run('leaflet(Pulse).add_markers(lng="long", lat="lat")')
        assert fault.error_type == 'KeyError'
        assert "Column 'long' not found" in fault.message

    def test_timeout(self, datasets):
        """Test that a runaway fragment becomes a timeout fault"""
        sandbox = Sandbox(datasets, timeout=0.2)
        fault = sandbox.run('import time\ntime.sleep(1)')
        assert isinstance(fault, ExecutionFault)
        assert fault.error_type == 'TimeoutError'
        assert '0.2' in fault.message

    def test_timed_out_run_is_stopped(self, datasets):
        """Test that a runaway loop does not leak figures or output into the next run"""
        sandbox = Sandbox(datasets, timeout=0.3)
        runaway = 'import time\nwhile True:\n    plt.figure()\n    print("runaway")\n    time.sleep(0.02)'
        fault = sandbox.run(runaway, 'runaway')
        assert fault.error_type == 'TimeoutError'
        assert 'runaway' in fault.stdout
        assert not [t for t in threading.enumerate() if t.name == 'exercise-runaway']

        figures = set(plt.get_fignums())
        output = sandbox.run('import time\ntime.sleep(0.1)\nx = 1', 'innocent')
        assert isinstance(output, Output)
        assert output.kind == OutputKind.TEXT
        assert output.stdout == ''
        assert set(plt.get_fignums()) == figures

    def test_cancel_survives_except_exception(self, datasets):
        """Test that learner code catching Exception cannot keep running"""
        sandbox = Sandbox(datasets, timeout=0.2)
        code = 'while True:\n    try:\n        x = 1\n    except Exception:\n        pass'
        fault = sandbox.run(code, 'stubborn')
        assert fault.error_type == 'TimeoutError'
        assert not [t for t in threading.enumerate() if t.name == 'exercise-stubborn']
        assert sandbox.run('1 + 1').value == '2'

    def test_blocked_run_refuses_next_run(self, datasets):
        """Test that nothing runs while a cancelled fragment is blocked in a native call"""
        sandbox = Sandbox(datasets, timeout=0.1, cancel_grace=0.05)
        fault = sandbox.run('import time\ntime.sleep(0.8)', 'blocked')
        assert fault.error_type == 'TimeoutError'

        busy = sandbox.run('1 + 1')
        assert isinstance(busy, ExecutionFault)
        assert busy.error_type == 'Busy'

        for thread in threading.enumerate():
            if thread.name == 'exercise-blocked':
                thread.join(5)
        assert sandbox.run('1 + 1').value == '2'


class TestSetupAndWarnings:
    """Tests for setup code, warnings and dataset isolation"""

    def test_setup_code(self, datasets):
        """Test that setup code runs before each fragment"""
        sandbox = Sandbox(datasets, setup_code='adults = Pulse[Pulse["Age"] >= 21]')
        output = sandbox.run('len(adults)')
        assert output.value == '3'

    def test_setup_failure(self, datasets):
        """Test that a failing setup is reported as such"""
        sandbox = Sandbox(datasets, setup_code='raise ValueError("bad setup")')
        fault = sandbox.run('1')
        assert fault.message == 'setup code failed: bad setup'
        assert fault.line is None

    def test_warnings_make_degraded_success(self, sandbox):
        """Test that warnings are collected on a successful output"""
        output = sandbox.run('import warnings\nwarnings.warn("careful")\n42')
        assert isinstance(output, Output)
        assert output.value == '42'
        assert output.degraded
        assert output.warnings == ['UserWarning: careful']

    def test_clean_run_has_no_warnings(self, sandbox):
        """Test that ordinary runs are not degraded"""
        assert not sandbox.run('1').degraded

    def test_datasets_not_mutated(self, sandbox, datasets):
        """Test that exercise code cannot change the shared datasets"""
        before = datasets['Pulse']
        for _ in range(3):
            sandbox.run('Pulse["Age"] = 0\nPulse.drop(columns=["Income"], inplace=True)\nPulse')
        assert datasets['Pulse'].equals(before)

    def test_fresh_namespace(self, sandbox):
        """Test that names do not leak between runs"""
        sandbox.run('leaked = 1')
        fault = sandbox.run('leaked')
        assert fault.error_type == 'NameError'
