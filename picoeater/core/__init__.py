"""Format model, line copying, and the split/join pipelines.

WHY: The core package holds everything that understands the cartridge
format. The CLI is a thin layer on top of it.

HOW: model.py classifies lines and defines the data types, lines.py
copies text with normalized newlines, splitter.py and joiner.py are the
two pipelines, manifest.py and discovery.py handle the part directory.

RULES:
- model.py is the leaf; it imports nothing from the pipelines
- Pipelines raise typed errors and never print; reporting is the CLI's job
"""
