# UI module for Pomodoro Timer application
from .main_window import MainWindow

__all__ = ['MainWindow']
