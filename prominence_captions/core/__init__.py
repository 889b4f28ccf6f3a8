"""Core alignment pipeline: buffer, tokenizer, aligner, transcript, calibration, classifier.

WHY: The core package is the stable heart of the captioner: the data
model and the algorithms that turn prominence events and recognized
text into sized words. Everything else (oracles, recognizers, server,
renderers) plugs in around it.

HOW: ir.py defines the values, buffer.py stores recent events,
tokenizer.py splits segments, aligner.py scores final words,
transcript.py holds what is on screen, calibration.py and classifier.py
turn scores into tiers. clock.py supplies an injectable "now".

RULES:
- No I/O and no asyncio in this package
- Modules here never read configuration; callers pass values in
- ir.py dataclasses are the contract between stages
"""
