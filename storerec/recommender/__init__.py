"""Recommendation engine for StoreRec.

This module contains the rule-based candidate pipeline, the shop
interleaver, category indexing, the affinity journal and the section
composer, together with the provider interfaces they consume.
"""
