"""cliprelay - relay clipboard prompts to an LLM and type the answer back.

Two nodes cooperate over plain TCP:
- capture node: watches a hotkey, sends the clipboard, types the response
- inference node: accumulates the prompt, runs the model, streams chunks back
"""

__version__ = "0.1.0"
