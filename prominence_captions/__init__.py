"""Prominence Captions: live captions sized by prosodic stress.

WHY: Plain live captions lose how something was said. Stressed words
carry meaning that viewers who rely on captions never hear. This package
fuses acoustic prominence events with speech recognition words so each
caption word can be drawn at a size that reflects how strongly it was
spoken.

HOW: Four-stage pipeline. Ingest (prominence oracle + speech recognizer),
align (back-project word times onto the prominence buffer), classify
(score → small/normal/large), render (pluggable renderers). Each stage is
independently testable.

RULES:
- Finalized words are scored once and never revised
- Interim words are replaced wholesale on every interim result
- All session state is owned by one CaptionSession and mutated only from
  its event handlers
- No error is fatal; the worst case is captions at the neutral tier
"""

__version__ = "0.1.0"
