"""Feissari: a timed survival game against LLM-driven street salespeople."""
