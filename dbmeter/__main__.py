from .gui import run_gui

run_gui()
