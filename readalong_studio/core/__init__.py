"""Core parsing, indexing, tracking and anchor editing modules.

WHY: The core package holds everything with real algorithmic content:
the IR, both parsers, the alignment index/locator, the position
tracker, and the anchor editor. The session module wires them together
for a host.

HOW: ir.py defines the data structures, smil.py and tei.py build them,
alignment.py indexes timings, tracker.py and anchors.py are the read
and write paths, session.py is the host-facing facade.

RULES:
- No rendering, audio decoding, or file persistence in this package
- The DocumentTree is re-derived after every edit, never patched
"""
