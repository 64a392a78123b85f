"""Core primitives: value types, rolling buffers, signal generation,
risk scoring, subscriber fan-out and the periodic driver.
"""
