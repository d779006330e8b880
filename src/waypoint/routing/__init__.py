"""Routing — template compilation, precedence scoring, and route tables.

Templates compile lazily, once per descriptor path, and tables resolve a
pathname by walking a score-sorted view that is rebuilt only when the
table's membership changes.
"""
