"""
Shared Infrastructure
=====================

Cross-cutting technical concerns:
- Structured JSON logging
- Grafana Cloud metrics export
"""
