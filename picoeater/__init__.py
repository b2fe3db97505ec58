"""picoeater: split PICO-8 cartridges into editable parts and back.

WHY: A .p8 cartridge holds the header, every Lua code tab and every
resource block in one text file. Editing code tabs in an external editor
and keeping them in version control is much easier with one file per
tab.

HOW: Two symmetric pipelines share a format model: split (cartridge ->
part files + manifest) and join (part files + manifest -> cartridge).
Each stage is independently testable.

RULES:
- Segment and resource bodies are opaque text; nothing is validated
- split(join(split(X))) yields the same part files as split(X)
- The manifest is the only state carried between a dump and a build
"""

__version__ = "0.1.0"
