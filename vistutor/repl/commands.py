#!/usr/bin/env python3
"""
REPL command definitions and help text.
"""

COMMANDS = {
    # Reading
    'sections': {
        'help': 'List sections and their lock state',
        'usage': 'sections',
        'examples': ['sections'],
    },
    'show': {
        'help': 'Show a section (default: the latest unlocked one)',
        'usage': 'show [section_id]',
        'examples': ['show', 'show static-charts'],
    },
    'datasets': {
        'help': 'List the datasets available to exercise code',
        'usage': 'datasets',
        'examples': ['datasets'],
    },

    # Exercises
    'run': {
        'help': 'Run an exercise with its current code',
        'usage': 'run <exercise_id>',
        'examples': ['run first-scatter'],
    },
    'edit': {
        'help': 'Replace the code of an exercise, then run it',
        'usage': 'edit <exercise_id>',
        'examples': ['edit first-scatter'],
    },
    'reset': {
        'help': 'Restore the original code of an exercise',
        'usage': 'reset <exercise_id>',
        'examples': ['reset first-scatter'],
    },
    'hint': {
        'help': 'Show the hint for an exercise',
        'usage': 'hint <exercise_id>',
        'examples': ['hint first-scatter'],
    },
    'solution': {
        'help': 'Show the solution for an exercise',
        'usage': 'solution <exercise_id>',
        'examples': ['solution first-scatter'],
    },
    'open': {
        'help': "Open an exercise's saved chart or map in the browser",
        'usage': 'open <exercise_id>',
        'examples': ['open quake-map'],
    },

    # Progress
    'next': {
        'help': 'Complete the current section and unlock the next one',
        'usage': 'next [section_id]',
        'examples': ['next', 'next setup'],
    },
    'skip': {
        'help': 'Unlock the next section without completing this one',
        'usage': 'skip [section_id]',
        'examples': ['skip'],
    },
    'progress': {
        'help': 'Show tutorial progress',
        'usage': 'progress',
        'examples': ['progress'],
    },
    'export': {
        'help': 'Export the tutorial with current outputs to HTML',
        'usage': 'export [path]',
        'examples': ['export', 'export ~/viz-tutorial.html'],
    },

    # Utilities
    'help': {
        'help': 'Show available commands',
        'usage': 'help [command]',
        'examples': ['help', 'help edit'],
    },
    'clear': {
        'help': 'Clear the screen',
        'usage': 'clear',
        'examples': ['clear'],
    },
    'exit': {
        'help': 'Exit the REPL',
        'usage': 'exit',
        'examples': ['exit', 'quit'],
    },
    'quit': {
        'help': 'Exit the REPL (alias for exit)',
        'usage': 'quit',
        'examples': ['quit'],
    },
}


def get_command_help(command: str = None) -> str:
    """Get help text for a command or all commands"""
    if command and command in COMMANDS:
        cmd = COMMANDS[command]
        lines = [
            f"  {command}: {cmd['help']}",
            f"  Usage: {cmd['usage']}",
        ]
        if cmd.get('examples'):
            lines.append(f"  Examples: {', '.join(cmd['examples'])}")
        return '\n'.join(lines)

    groups = {
        'Reading': ['sections', 'show', 'datasets'],
        'Exercises': ['run', 'edit', 'reset', 'hint', 'solution', 'open'],
        'Progress': ['next', 'skip', 'progress', 'export'],
        'Utilities': ['help', 'clear', 'exit'],
    }

    lines = ["Available commands:\n"]
    for group, cmds in groups.items():
        lines.append(f"  {group}:")
        for cmd in cmds:
            if cmd in COMMANDS:
                lines.append(f"    {cmd:10} - {COMMANDS[cmd]['help']}")
        lines.append("")

    lines.append("Type 'help <command>' for detailed help on a specific command.")
    return '\n'.join(lines)
