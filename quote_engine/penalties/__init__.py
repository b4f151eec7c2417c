"""Penalty rules, SLA detection and the penalty engine."""
