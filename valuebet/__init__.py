"""
Sports value-bet engine.

Predicts over/under lines for match statistics (corners, cards, shots)
from each team's recent form, reconciles the same fixture across data
sources, prices the bookmaker quotes for expected value, and settles
predictions against official results under a provider call budget.

Layout:
- engine/: probability estimator, entity matcher, EV evaluator, finder pipeline
- verification/: result fetching, quota limiter, outcome resolution, accuracy stats
- feeds/: provider interfaces and the HTTP result client
- models/: data schemas shared across the package
"""

__version__ = "0.1.0"
