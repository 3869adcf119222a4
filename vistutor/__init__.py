"""
vistutor - Interactive Visualization Tutorials

Runs tutorial documents that walk learners from static charts and maps to
interactive plotly and Leaflet widgets, one editable exercise at a time.
"""

__version__ = "0.1.0"
