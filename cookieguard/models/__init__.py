"""Typed models: rule documents, policy, detection results and reports."""
