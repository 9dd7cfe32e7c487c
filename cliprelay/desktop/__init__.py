"""Desktop collaborators for the capture node.

pyperclip and pynput are imported lazily by the classes that need them,
so the relay core imports cleanly on headless machines.
"""
