"""
Core module for the BombusCV pipeline architecture.

Contains the typed messages, capture parameters, pipeline stages,
the pipeline orchestrator and protocol definitions (interfaces) for
all components.
"""
