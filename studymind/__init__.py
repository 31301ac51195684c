"""StudyMind - interactive mind maps for study notes."""

__version__ = "1.0.0"
__app_id__ = "io.github.studymind.StudyMind"
