"""Supervisor package for the Kersh Timer engine.

This package provides the timer scheduler, its clocks, the engine facade
wiring the scheduler to its collaborators, and logging configuration.
"""
