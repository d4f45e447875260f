"""Skill translation: cached, bounded-concurrency translation of skill folder texts"""
__version__ = "0.1.0"
