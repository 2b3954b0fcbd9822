"""
POS Core Primitives — Reusable Business Building Blocks
========================================================
Pure, engine-agnostic helpers shared by the order engine.

- Pure Python (no Django dependency)
- Deterministic (same input → same output)

Primitives:
    money — integer minor-unit amounts and half-up percentage rounding
"""
