"""Test suite for the FormGate validation and activation engine.

This package contains tests for:
- Field type registry (closed set, categories, per-type rules)
- Field and field-list validation (errors, warnings, modes)
- Form and Template activation guards (transitions, cascades)
- Event system (emission, serialization)
- Runtime integration scenarios (end-to-end lifecycles)
"""
