from decision_guardian.tui.renderers import CheckConsoleUI

__all__ = ["CheckConsoleUI"]
