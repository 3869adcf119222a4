"""Interactive REPL front end"""

from .session import TutorialREPL
from .commands import COMMANDS, get_command_help

__all__ = ['TutorialREPL', 'COMMANDS', 'get_command_help']
